from __future__ import annotations

import re
import uuid
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse

from core.config import settings
from domain.value_objects import BlobRef

SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]")

EXTENSIONS = {"jpeg": ".jpg", "pdf": ".pdf"}


class BlobTooLarge(ValueError):
    """Non-retriable."""


class BlobStore(Protocol):
    def put_page(self, *, key: str, page_number: int, submission: int, fmt: str, blob: bytes) -> BlobRef: ...

    def get_bytes(self, *, uri: str) -> bytes: ...


class LocalBlobStore:
    def __init__(self, root_dir: str | None = None, max_upload_mb: int | None = None) -> None:
        self.root = Path(root_dir or settings.BLOB_ROOT)
        self.max_bytes = (max_upload_mb or settings.MAX_UPLOAD_MB) * 1024 * 1024

    def _doc_dir(self, key: str) -> Path:
        # document keys are slash-separated paths; sanitize each segment
        return self.root.joinpath(*(SAFE_NAME.sub("_", part) for part in key.split("/")))

    def put_page(self, *, key: str, page_number: int, submission: int, fmt: str, blob: bytes) -> BlobRef:
        if len(blob) > self.max_bytes:
            raise BlobTooLarge(f"page is {len(blob)} bytes, limit is {self.max_bytes}")
        ext = EXTENSIONS.get(fmt, ".bin")
        # concurrent attempts at the same submission must not share a file
        dest = self._doc_dir(key) / f"page-{page_number}-v{submission}-{uuid.uuid4().hex[:8]}{ext}"
        dest.parent.mkdir(parents=True, exist_ok=True)

        tmp = dest.with_suffix(dest.suffix + ".part")
        tmp.write_bytes(blob)
        tmp.replace(dest)  # atomic move
        return BlobRef(uri=dest.resolve().as_uri(), size=dest.stat().st_size)

    def get_bytes(self, *, uri: str) -> bytes:
        u = urlparse(uri)
        if u.scheme != "file":
            raise ValueError(f"unsupported uri scheme: {u.scheme}")
        return Path(unquote(u.path)).read_bytes()
