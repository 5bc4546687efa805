"""Where asset bytes live and how clients are allowed to fetch them.

Object keys are POSIX paths relative to the upload root. Clients never see a
raw key on its own: every URL handed out carries an expiry and an HMAC over
``key:expires:download`` so links cannot be forged or widened into downloads.
"""

import hashlib
import hmac
import time
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from urllib.parse import urlencode

CONTENT_ROUTE = "/api/v1/assets/content"


def sign_object_url(secret_key: str, object_key: str, expires: int, download: bool = False) -> str:
    message = f"{object_key}:{expires}:{int(download)}"
    return hmac.new(secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_object_url(
    secret_key: str, object_key: str, expires: int, signature: str, download: bool = False
) -> bool:
    """False when the link expired or the signature does not match."""
    if int(time.time()) > expires:
        return False
    return hmac.compare_digest(sign_object_url(secret_key, object_key, expires, download), signature)


class StorageAdapter(ABC):
    provider: str = "local"

    @abstractmethod
    def write_file(self, object_key: str, content: bytes) -> None:
        pass

    @abstractmethod
    def generate_download_url(
        self, object_key: str, expires_in: int = 3600, *, download: bool = False
    ) -> str:
        pass

    @abstractmethod
    def verify_download_url(self, object_key: str, expires: int, signature: str, *, download: bool = False) -> bool:
        pass

    @abstractmethod
    def delete_object(self, object_key: str) -> None:
        pass

    @abstractmethod
    def object_exists(self, object_key: str) -> bool:
        pass


class LocalFileSystemAdapter(StorageAdapter):
    provider = "local"

    def __init__(self, base_path: str, base_url: str, *, signing_key: str) -> None:
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/")
        self.signing_key = signing_key
        self.base_path.mkdir(parents=True, exist_ok=True)

    def resolve_path(self, object_key: str) -> Path:
        """Map a key onto the upload root, refusing anything that escapes it."""
        if not object_key or "\\" in object_key:
            raise ValueError("Invalid object key")
        key_path = PurePosixPath(object_key)
        if key_path.is_absolute() or ".." in key_path.parts:
            raise ValueError("Invalid object key")
        base = self.base_path.resolve()
        resolved = (base / Path(*key_path.parts)).resolve()
        if base not in resolved.parents:
            raise ValueError("Invalid object key")
        return resolved

    def generate_download_url(
        self, object_key: str, expires_in: int = 3600, *, download: bool = False
    ) -> str:
        expires = int(time.time()) + expires_in
        query = {
            "key": object_key,
            "expires": expires,
            "signature": sign_object_url(self.signing_key, object_key, expires, download),
        }
        if download:
            query["download"] = 1
        return f"{self.base_url}{CONTENT_ROUTE}?{urlencode(query)}"

    def verify_download_url(self, object_key: str, expires: int, signature: str, *, download: bool = False) -> bool:
        return verify_object_url(self.signing_key, object_key, expires, signature, download)

    def write_file(self, object_key: str, content: bytes) -> None:
        path = self.resolve_path(object_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    def delete_object(self, object_key: str) -> None:
        self.resolve_path(object_key).unlink(missing_ok=True)

    def object_exists(self, object_key: str) -> bool:
        try:
            return self.resolve_path(object_key).is_file()
        except ValueError:
            return False
