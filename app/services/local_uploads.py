from __future__ import annotations

from pathlib import Path
from uuid import UUID, uuid4

from fastapi import UploadFile

from app.core.errors import ValidationError

_ZIP = ((0, b"PK\x03\x04"), (0, b"PK\x05\x06"))
_RIFF = ((0, b"RIFF"),)
_ISO_MEDIA = ((4, b"ftyp"),)
_EBML = ((0, b"\x1a\x45\xdf\xa3"),)

# (offset, bytes) pairs; a file matches when any pair is found at its offset.
_SIGNATURES: dict[str, tuple[tuple[int, bytes], ...]] = {
    ".pdf": ((0, b"%PDF"),),
    ".png": ((0, b"\x89PNG\r\n\x1a\n"),),
    ".jpg": ((0, b"\xff\xd8\xff"),),
    ".jpeg": ((0, b"\xff\xd8\xff"),),
    ".gif": ((0, b"GIF87a"), (0, b"GIF89a")),
    ".webp": ((8, b"WEBP"),),
    ".wav": ((8, b"WAVE"),),
    ".avi": ((8, b"AVI "),),
    ".mp3": ((0, b"ID3"), (0, b"\xff\xfb"), (0, b"\xff\xf3"), (0, b"\xff\xf2")),
    ".flac": ((0, b"fLaC"),),
    ".ogg": ((0, b"OggS"),),
    ".mp4": _ISO_MEDIA,
    ".m4a": _ISO_MEDIA,
    ".mov": _ISO_MEDIA,
    ".webm": _EBML,
    ".mkv": _EBML,
    ".docx": _ZIP,
    ".xlsx": _ZIP,
    ".pptx": _ZIP,
    ".zip": _ZIP,
}

# RIFF containers also carry the outer tag.
_PREFIXED = {".webp": _RIFF, ".wav": _RIFF, ".avi": _RIFF}

# Rendered by browsers as active content.
_BLOCKED_EXTENSIONS = frozenset({".html", ".htm", ".svg", ".xhtml", ".js", ".mjs", ".xml"})

_CHUNK_SIZE = 1024 * 1024


def _matches(head: bytes, signatures) -> bool:
    return any(head[offset : offset + len(magic)] == magic for offset, magic in signatures)


def sniff_extension(head: bytes, ext: str) -> None:
    """Reject ``head`` when it cannot be a file of type ``ext``.

    Extensions without a known signature (plain text, csv, ...) pass through.
    """
    if ext in _BLOCKED_EXTENSIONS:
        raise ValidationError(f"Uploads of type '{ext}' are not accepted", code="file_type_blocked")
    signatures = _SIGNATURES.get(ext)
    if signatures is None:
        return
    if not _matches(head, signatures) or (ext in _PREFIXED and not _matches(head, _PREFIXED[ext])):
        raise ValidationError(f"File content is not a valid '{ext}' file", code="file_content_mismatch")


def owner_subdir(owner_id: UUID | str) -> Path:
    return Path("users") / str(owner_id)


def format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = size_bytes / 1024
    for unit in ("KB", "MB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


async def save_upload(
    file: UploadFile,
    base_dir: Path,
    subdir: Path,
    max_size_bytes: int = 0,
) -> tuple[str, str, int]:
    """Stream ``file`` below ``base_dir/subdir`` under a random name.

    Returns ``(object_key, original_name, size_bytes)``; ``object_key`` is the
    POSIX path relative to ``base_dir``. Nothing is left on disk when the
    upload is rejected.
    """
    root = base_dir.resolve()
    target_dir = (root / subdir).resolve()
    if target_dir != root and root not in target_dir.parents:
        raise ValidationError("Invalid upload path")
    target_dir.mkdir(parents=True, exist_ok=True)

    original_name = Path(file.filename or "").name or "upload.bin"
    ext = Path(original_name).suffix.lower()
    target = target_dir / f"{uuid4().hex}{ext}"
    written = 0

    try:
        with target.open("wb") as out:
            chunk = await file.read(_CHUNK_SIZE)
            if chunk:
                sniff_extension(chunk, ext)
            while chunk:
                written += len(chunk)
                if max_size_bytes and written > max_size_bytes:
                    raise ValidationError(
                        f"File exceeds maximum allowed size of {max_size_bytes // (1024 * 1024)} MB",
                        code="file_too_large",
                    )
                out.write(chunk)
                chunk = await file.read(_CHUNK_SIZE)
    except Exception:
        target.unlink(missing_ok=True)
        raise
    finally:
        await file.close()

    return target.relative_to(root).as_posix(), original_name, written
