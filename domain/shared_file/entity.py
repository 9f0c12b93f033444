"""Domain entity representing a file shared through a short link."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SharedFile:
    """Aggregate root for an uploaded file and its public link."""

    id: Optional[int]
    storage_key: str
    stored_name: str
    display_name: str
    slug: str
    size: int = 0
    content_type: Optional[str] = None
    password_hash: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.expires_at = _ensure_utc(self.expires_at)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.deleted_at = _ensure_utc(self.deleted_at)

    def _touch(self) -> None:
        now = utcnow()
        self.updated_at = now
        if self.created_at is None:
            self.created_at = now

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) > self.expires_at

    def has_password(self) -> bool:
        return bool(self.password_hash)

    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def change_expiry(self, expires_at: datetime) -> None:
        self.expires_at = _ensure_utc(expires_at)
        self._touch()

    def set_password_hash(self, password_hash: Optional[str]) -> None:
        """Replace the hash; ``None`` removes password protection."""
        self.password_hash = password_hash or None
        self._touch()

    def rename_slug(self, slug: str, *, display_name: Optional[str] = None) -> None:
        self.slug = slug
        if display_name is not None:
            self.display_name = display_name
        self._touch()

    def mark_deleted(self) -> None:
        self.deleted_at = utcnow()
        self._touch()
