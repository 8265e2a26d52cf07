from __future__ import annotations

import mimetypes

DEFAULT_MIME: str = "application/octet-stream"


def guess_mime_type(path: str) -> str:
    """Return the MIME type for an upload, falling back to octet-stream."""
    mime_type, _ = mimetypes.guess_type(path)
    return mime_type or DEFAULT_MIME
