from __future__ import annotations

import base64
import mimetypes

from pydantic import BaseModel


DEFAULT_CONTENT_TYPE = "application/octet-stream"

# (offset, signature, content type); WebP also needs the RIFF container check
MAGIC_SIGNATURES: tuple[tuple[int, bytes, str], ...] = (
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (8, b"WEBP", "image/webp"),
    (0, b"BM", "image/bmp"),
    (0, b"%PDF-", "application/pdf"),
)

# mimetypes maps some types to rarely used extensions (image/jpeg -> .jpe on older tables)
PREFERRED_EXTENSIONS: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "application/pdf": ".pdf",
    "application/json": ".json",
    "text/plain": ".txt",
    DEFAULT_CONTENT_TYPE: ".bin",
}


def sniff_content_type(data: bytes, declared: str | None = None) -> str:
    """Guess a payload's media type from its leading bytes.

    Falls back to the declared (HTTP header) type, then to octet-stream.
    IPFS API nodes usually answer ``cat`` with ``text/plain``, so the
    signature check wins over the header.
    """
    for offset, signature, content_type in MAGIC_SIGNATURES:
        if data[offset : offset + len(signature)] != signature:
            continue
        if content_type == "image/webp" and not data.startswith(b"RIFF"):
            continue
        return content_type

    if declared:
        media_type = declared.split(";", 1)[0].strip().lower()
        if media_type:
            return media_type
    return DEFAULT_CONTENT_TYPE


class Payload(BaseModel):
    """Content returned by a successful retrieval."""

    cid: str
    data: bytes
    content_type: str = DEFAULT_CONTENT_TYPE
    size_bytes: int = 0
    elapsed: float = 0.0

    @classmethod
    def from_bytes(
        cls,
        cid: str,
        data: bytes,
        *,
        declared_content_type: str | None = None,
        elapsed: float = 0.0,
    ) -> Payload:
        return cls(
            cid=cid,
            data=data,
            content_type=sniff_content_type(data, declared_content_type),
            size_bytes=len(data),
            elapsed=elapsed,
        )

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")

    def data_uri(self) -> str:
        """Return a ``data:`` URI usable directly as an image source."""
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"

    def suggested_filename(self, stem: str = "download") -> str:
        extension = PREFERRED_EXTENSIONS.get(self.content_type) or mimetypes.guess_extension(self.content_type)
        return f"{stem}{extension or '.bin'}"
