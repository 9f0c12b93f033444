"""HTTP header helpers for content disposition and filenames."""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote


def sanitize_filename(filename: Optional[str], fallback: str) -> str:
    """Sanitize a filename for use in Content-Disposition.

    Removes CR/LF, quotes and backslashes, trims spaces. Falls back to the
    provided default when the result is empty.
    """
    if not filename:
        return fallback
    cleaned = filename.replace("\r", " ").replace("\n", " ").strip()
    cleaned = cleaned.replace('"', "").replace("\\", "")
    return cleaned or fallback


def build_content_disposition(mode: str, filename: str) -> str:
    """Build a Content-Disposition header value.

    Non-ASCII names are carried in the RFC 5987 ``filename*`` parameter,
    with an ASCII approximation in ``filename`` for old clients.

    Args:
        mode: "inline" or "attachment"
        filename: suggested filename
    """
    safe = sanitize_filename(filename, "file")
    ascii_name = safe.encode("ascii", "ignore").decode("ascii").strip() or "file"
    encoded = quote(safe, safe="")
    return f"{mode}; filename=\"{ascii_name}\"; filename*=UTF-8''{encoded}"
