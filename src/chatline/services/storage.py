"""Local-disk storage for message attachments and profile images."""

from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Final

from chatline.core.errors import ValidationError
from chatline.core.settings import settings

logger = logging.getLogger(__name__)

CHUNK_SIZE: Final[int] = 64 * 1024

ATTACHMENT_TYPES: Final = re.compile(r"jpeg|jpg|png|gif|pdf|doc|docx|xls|xlsx|msword|sheet|document")
ATTACHMENT_EXTENSIONS: Final = frozenset(
    {".jpeg", ".jpg", ".png", ".gif", ".pdf", ".doc", ".docx", ".xls", ".xlsx"}
)
IMAGE_TYPES: Final = re.compile(r"jpeg|jpg|png|gif")
IMAGE_EXTENSIONS: Final = frozenset({".jpeg", ".jpg", ".png", ".gif"})

MESSAGE_PREFIX: Final[str] = "msg"
PROFILE_PREFIX: Final[str] = "profile"


@dataclass(frozen=True)
class StoredFile:
    """A file written to the upload directory."""

    path: str
    url: str
    name: str
    content_type: str


class AttachmentStorage:
    """Writes uploads under ``root`` and removes them again on request."""

    def __init__(
        self,
        root: Path | str | None = None,
        *,
        url_prefix: str | None = None,
        max_bytes: int | None = None,
    ) -> None:
        self.root = Path(root if root is not None else settings.upload_dir).resolve()
        self.url_prefix = (url_prefix or settings.upload_url_prefix).rstrip("/")
        self.max_bytes = max_bytes if max_bytes is not None else settings.max_upload_bytes

    def save_attachment(self, stream: BinaryIO, filename: str, content_type: str | None) -> StoredFile:
        """Store a message attachment (images, PDF, Word and Excel documents)."""
        return self._save(
            stream,
            filename,
            content_type,
            prefix=MESSAGE_PREFIX,
            extensions=ATTACHMENT_EXTENSIONS,
            types=ATTACHMENT_TYPES,
            kind="attachment",
        )

    def save_profile_image(self, stream: BinaryIO, filename: str, content_type: str | None) -> StoredFile:
        """Store a profile picture (images only)."""
        return self._save(
            stream,
            filename,
            content_type,
            prefix=PROFILE_PREFIX,
            extensions=IMAGE_EXTENSIONS,
            types=IMAGE_TYPES,
            kind="profile image",
        )

    def delete(self, path: str | None) -> bool:
        """Remove a stored file; return True if something was deleted.

        Paths outside the upload directory are ignored.
        """
        if not path:
            return False
        target = Path(path).resolve()
        if not target.is_relative_to(self.root):
            logger.warning("Refusing to delete %s outside upload directory", target)
            return False
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Failed to delete stored file %s: %s", target, exc)
            return False
        logger.debug("Deleted stored file %s", target)
        return True

    def delete_many(self, paths: list[str | None]) -> int:
        return sum(1 for path in paths if self.delete(path))

    def _save(
        self,
        stream: BinaryIO,
        filename: str,
        content_type: str | None,
        *,
        prefix: str,
        extensions: frozenset[str],
        types: re.Pattern[str],
        kind: str,
    ) -> StoredFile:
        original_name = Path(filename or "").name
        extension = Path(original_name).suffix.lower()
        mime = (content_type or "").lower()
        if extension not in extensions or not types.search(mime):
            raise ValidationError(f"Unsupported {kind} type")

        self.root.mkdir(parents=True, exist_ok=True)
        stored_name = f"{prefix}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{extension}"
        target = self.root / stored_name

        written = 0
        with target.open("wb") as handle:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > self.max_bytes:
                    break
                handle.write(chunk)

        if written > self.max_bytes:
            target.unlink(missing_ok=True)
            raise ValidationError(
                f"File too large (limit {self.max_bytes // (1024 * 1024)} MB)"
            )

        return StoredFile(
            path=str(target),
            url=f"{self.url_prefix}/{stored_name}",
            name=original_name,
            content_type=mime,
        )


def get_storage() -> AttachmentStorage:
    """Return a storage service bound to the configured upload directory."""
    return AttachmentStorage()
