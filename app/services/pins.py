"""PIN hashing and verification.

A PIN is a short per-asset secret, independent of the account password. Only
its bcrypt hash is ever stored; callers must not log the raw value.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property

from passlib.context import CryptContext

from app.core.errors import AuthorizationError, DenialReason, ValidationError


@dataclass(frozen=True, slots=True)
class PinPolicy:
    min_length: int = 4
    max_length: int = 6
    hash_rounds: int = 12


class PinHasher:
    def __init__(self, policy: PinPolicy | None = None) -> None:
        self.policy = policy or PinPolicy()
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=self.policy.hash_rounds,
        )

    @staticmethod
    def normalize(raw_pin: str | None) -> str | None:
        """Strip surrounding whitespace; an empty value means no PIN was supplied."""
        if raw_pin is None:
            return None
        cleaned = str(raw_pin).strip()
        return cleaned or None

    def validate(self, raw_pin: str | None) -> str:
        pin = self.normalize(raw_pin)
        if pin is None:
            raise ValidationError("PIN must not be empty", code="pin_empty")
        if len(pin) < self.policy.min_length:
            raise ValidationError(
                f"PIN too short; minimum {self.policy.min_length} characters", code="pin_too_short"
            )
        if len(pin) > self.policy.max_length:
            raise ValidationError(
                f"PIN too long; maximum {self.policy.max_length} characters", code="pin_too_long"
            )
        return pin

    def hash_pin(self, raw_pin: str | None) -> str:
        return self._context.hash(self.validate(raw_pin))

    @cached_property
    def _dummy_hash(self) -> str:
        return self._context.hash("0" * self.policy.min_length)

    def verify_pin(self, raw_pin: str | None, stored_hash: str | None) -> bool:
        pin = self.normalize(raw_pin)
        if stored_hash is None:
            # Same bcrypt cost either way, so timing does not reveal protection.
            if pin is not None:
                self._context.verify(pin, self._dummy_hash)
            return True
        if pin is None:
            return False
        return self._context.verify(pin, stored_hash)

    def require_pin(self, raw_pin: str | None, stored_hash: str | None) -> None:
        """Raise unless ``raw_pin`` satisfies ``stored_hash``.

        Missing and wrong PINs are reported with different reasons so clients
        can tell "prompt for a PIN" apart from "prompted and failed".
        """
        if stored_hash is None:
            self.verify_pin(raw_pin, None)
            return
        if self.normalize(raw_pin) is None:
            raise AuthorizationError(DenialReason.PIN_REQUIRED)
        if not self.verify_pin(raw_pin, stored_hash):
            raise AuthorizationError(DenialReason.PIN_INVALID)
