"""Slug rules: the allowed alphabet, validation and derivation from filenames.

Two link variants exist and one is chosen per deployment:

* ``slug``: a separate short token made of ``[a-z0-9-]``; the original
  filename is kept only as the display name.
* ``filename``: the sanitized filename (extension included) is both the
  display name and the public token; Unicode letters and digits plus
  ``.``, ``_`` and ``-`` are allowed.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from enum import Enum

from domain.common.exceptions import InvalidSlugException

MAX_SLUG_LENGTH = 100
# 文件名变体中保留的扩展名上限（含点），剩余长度留给主体与随机后缀
MAX_EXTENSION_LENGTH = MAX_SLUG_LENGTH // 2
RANDOM_SUFFIX_BYTES = 2
FALLBACK_TOKEN_BYTES = 4

_STRICT_PATTERN = re.compile(r"^[a-z0-9-]+$")
_STRICT_STRIP = re.compile(r"[^a-z0-9-]+")
_PERMISSIVE_PATTERN = re.compile(r"^[\w.-]+$")
_PERMISSIVE_STRIP = re.compile(r"[^\w.-]+")
_HYPHEN_RUNS = re.compile(r"-+")


class LinkVariant(str, Enum):
    SLUG = "slug"
    FILENAME = "filename"


@dataclass(frozen=True)
class SlugPolicy:
    variant: LinkVariant = LinkVariant.SLUG
    max_attempts: int = 100

    @property
    def uses_display_name(self) -> bool:
        return self.variant == LinkVariant.FILENAME

    @property
    def min_derived_length(self) -> int:
        return 3 if self.variant == LinkVariant.SLUG else 1

    def validate(self, candidate: str) -> None:
        if not candidate:
            raise InvalidSlugException(candidate, reason="empty")
        if len(candidate) > MAX_SLUG_LENGTH:
            raise InvalidSlugException(candidate, reason=f"longer than {MAX_SLUG_LENGTH} characters")
        if self.variant == LinkVariant.SLUG:
            if not _STRICT_PATTERN.match(candidate):
                raise InvalidSlugException(
                    candidate, reason="use lowercase letters, numbers and hyphens only"
                )
            return
        if not _PERMISSIVE_PATTERN.match(candidate) or not candidate.strip("."):
            raise InvalidSlugException(
                candidate, reason="use letters, numbers, '.', '_' and '-' only"
            )

    def _clean(self, value: str) -> str:
        value = value.lower().replace(" ", "-").replace("_", "-")
        pattern = _STRICT_STRIP if self.variant == LinkVariant.SLUG else _PERMISSIVE_STRIP
        value = pattern.sub("", value)
        value = _HYPHEN_RUNS.sub("-", value)
        return value.strip("-")

    def split_filename(self, filename: str) -> tuple[str, str]:
        """Return the cleaned base and the extension to re-append (maybe empty)."""
        name = os.path.basename(filename or "")
        stem, ext = os.path.splitext(name)
        if self.variant == LinkVariant.SLUG:
            return self._clean(stem), ""
        ext = self._clean(ext.lstrip("."))
        return self._clean(stem).strip("."), f".{ext}" if ext else ""

    def fallback(self, token: str) -> str:
        return f"file-{token}"

    def compose(self, base: str, ext: str, suffix: str = "") -> str:
        """Join base, optional random suffix and extension within the length cap."""
        ext = ext[:MAX_EXTENSION_LENGTH]
        tail = f"-{suffix}" if suffix else ""
        room = max(MAX_SLUG_LENGTH - len(ext) - RANDOM_SUFFIX_BYTES * 2 - 1, 1)
        return f"{base[:room].rstrip('-')}{tail}{ext}"
