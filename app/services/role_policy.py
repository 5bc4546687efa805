from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from app.models.user import UserRole


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True, slots=True)
class RolePolicy:
    """Decides the role granted to a new account.

    Only addresses on the configured allow-list become administrators; the
    comparison is an exact match after case folding.
    """

    admin_emails: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_emails(cls, emails: Iterable[str]) -> "RolePolicy":
        return cls(admin_emails=frozenset(normalize_email(e) for e in emails if e and e.strip()))

    def role_for(self, email: str) -> UserRole:
        if normalize_email(email) in self.admin_emails:
            return UserRole.ADMIN
        return UserRole.USER
