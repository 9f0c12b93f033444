"""Repository abstraction for shared files.

Every query only sees rows that have not been soft-deleted.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from .entity import SharedFile


class SharedFileRepository(ABC):
    """Contract for persisting and querying shared files."""

    @abstractmethod
    async def create(self, shared_file: SharedFile) -> SharedFile:
        """Insert a row.

        Raises SlugAlreadyTakenException / StoredNameTakenException when the
        store's unique indexes reject the row.
        """

    @abstractmethod
    async def update(self, shared_file: SharedFile) -> SharedFile:
        ...

    @abstractmethod
    async def soft_delete(self, file_id: int) -> None:
        ...

    @abstractmethod
    async def get_by_id(self, file_id: int) -> Optional[SharedFile]:
        ...

    @abstractmethod
    async def get_by_slug(self, slug: str) -> Optional[SharedFile]:
        ...

    @abstractmethod
    async def get_by_display_name(self, display_name: str) -> Optional[SharedFile]:
        """Newest row with that display name."""

    @abstractmethod
    async def exists_by_slug(self, slug: str, *, exclude_id: Optional[int] = None) -> bool:
        ...

    @abstractmethod
    async def exists_by_display_name(
        self, display_name: str, *, exclude_id: Optional[int] = None
    ) -> bool:
        ...

    @abstractmethod
    async def exists_by_stored_name(self, stored_name: str) -> bool:
        ...

    @abstractmethod
    async def list_active(self, now: datetime) -> list[SharedFile]:
        """Rows that never expire or expire at or after ``now``, newest first."""

    @abstractmethod
    async def list_expired(self, now: datetime) -> list[SharedFile]:
        """Rows the sweep should purge: ``expires_at <= now``.

        A row expiring exactly at ``now`` is still served (expiry is
        ``now > expires_at``) but is already due for purging.
        """

    @abstractmethod
    async def count(self) -> int:
        ...
