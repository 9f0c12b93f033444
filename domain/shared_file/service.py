"""Shared-file domain services: public link generation and password hashing."""
from __future__ import annotations

import secrets
from typing import Callable, Optional

import bcrypt

from domain.common.exceptions import (
    DomainValidationException,
    SlugAlreadyTakenException,
    SlugGenerationExhaustedException,
)
from .repository import SharedFileRepository
from .slug import FALLBACK_TOKEN_BYTES, RANDOM_SUFFIX_BYTES, SlugPolicy

BCRYPT_MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """bcrypt hashing with a fixed work factor."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    @staticmethod
    def validate(password: str) -> None:
        if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise DomainValidationException(
                f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes",
                field="password",
                message_key="file.password.too_long",
            )

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            return False


class SlugService:
    """Produces and checks public link tokens against the record store."""

    def __init__(
        self,
        repository: SharedFileRepository,
        policy: SlugPolicy,
        token_hex: Callable[[int], str] = secrets.token_hex,
    ):
        self.repository = repository
        self.policy = policy
        self._token_hex = token_hex

    async def _is_taken(self, candidate: str, exclude_id: Optional[int]) -> bool:
        if await self.repository.exists_by_slug(candidate, exclude_id=exclude_id):
            return True
        if self.policy.uses_display_name:
            return await self.repository.exists_by_display_name(candidate, exclude_id=exclude_id)
        return False

    async def check_unique(self, candidate: str, *, exclude_id: Optional[int] = None) -> None:
        if await self._is_taken(candidate, exclude_id):
            raise SlugAlreadyTakenException(candidate)

    async def validate_custom(self, candidate: str, *, exclude_id: Optional[int] = None) -> str:
        self.policy.validate(candidate)
        await self.check_unique(candidate, exclude_id=exclude_id)
        return candidate

    async def derive_from_name(self, original_filename: str) -> str:
        base, ext = self.policy.split_filename(original_filename)
        if len(base) < self.policy.min_derived_length:
            base = self.policy.fallback(self._token_hex(FALLBACK_TOKEN_BYTES))

        candidate = self.policy.compose(base, ext)
        for _ in range(self.policy.max_attempts):
            self.policy.validate(candidate)
            if not await self._is_taken(candidate, None):
                return candidate
            candidate = self.policy.compose(base, ext, self._token_hex(RANDOM_SUFFIX_BYTES))
        raise SlugGenerationExhaustedException(base, self.policy.max_attempts)

    async def resolve(self, custom: Optional[str], original_filename: str) -> str:
        if custom:
            return await self.validate_custom(custom)
        return await self.derive_from_name(original_filename)
