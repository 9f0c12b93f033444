"""Application-level storage helpers to avoid infra coupling."""
from __future__ import annotations

from typing import Optional
import mimetypes
import secrets

# 超长扩展名直接丢弃，保证存储文件名远低于文件系统 255 字节上限
MAX_EXTENSION_LENGTH = 16


def file_extension(filename: Optional[str]) -> str:
    """Lowercased extension with leading dot, '' when the name has none."""
    if not filename:
        return ""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem.strip(".") or not ext or len(ext) > MAX_EXTENSION_LENGTH:
        return ""
    return f".{ext.lower()}"


def build_stored_name(original_filename: Optional[str], token: Optional[str] = None) -> str:
    """Random backend name keeping the original extension, e.g. ``3f9a...c1.pdf``."""
    return f"{token or secrets.token_hex(16)}{file_extension(original_filename)}"


def guess_content_type(filename: str) -> str:
    ctype, _ = mimetypes.guess_type(filename)
    return ctype or "application/octet-stream"
