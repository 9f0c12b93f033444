"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        message_key: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        self.message_key = message_key
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
        message_key: str | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
            message_key=message_key or "validation.domain",
        )


class SharedFileNotFoundException(BusinessException):
    def __init__(
        self,
        file_id: Optional[int] = None,
        *,
        slug: Optional[str] = None,
        display_name: Optional[str] = None,
    ):
        details = {}
        if file_id is not None:
            details["file_id"] = file_id
        if slug is not None:
            details["slug"] = slug
        if display_name is not None:
            details["display_name"] = display_name
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="File not found",
            error_type="SharedFileNotFound",
            details=details or None,
            message_key="file.not_found",
        )


class SharedFileExpiredException(BusinessException):
    def __init__(self, file_id: Optional[int] = None):
        details = {"file_id": file_id} if file_id is not None else None
        super().__init__(
            code=BusinessCode.FILE_EXPIRED,
            message="This file has expired",
            error_type="SharedFileExpired",
            details=details,
            message_key="file.expired",
        )


class PasswordRequiredException(BusinessException):
    def __init__(self, slug: Optional[str] = None):
        super().__init__(
            code=BusinessCode.PASSWORD_REQUIRED,
            message="Password required",
            error_type="PasswordRequired",
            details={"slug": slug} if slug else None,
            field="password",
            message_key="file.password.required",
        )


class InvalidPasswordException(BusinessException):
    def __init__(self):
        super().__init__(
            code=BusinessCode.PASSWORD_INVALID,
            message="Invalid password",
            error_type="InvalidPassword",
            field="password",
            message_key="file.password.invalid",
        )


class InvalidSlugException(BusinessException):
    def __init__(self, slug: str, *, reason: str):
        super().__init__(
            code=BusinessCode.SLUG_INVALID,
            message=f"Invalid slug format: {reason}",
            error_type="InvalidSlug",
            details={"slug": slug, "reason": reason},
            field="slug",
            message_key="file.slug.invalid",
        )


class SlugAlreadyTakenException(BusinessException):
    def __init__(self, slug: str):
        super().__init__(
            code=BusinessCode.SLUG_ALREADY_TAKEN,
            message="Slug already taken",
            error_type="SlugAlreadyTaken",
            details={"slug": slug},
            field="slug",
            message_key="file.slug.taken",
        )


class StoredNameTakenException(BusinessException):
    def __init__(self, stored_name: str):
        super().__init__(
            code=BusinessCode.NAME_ALREADY_TAKEN,
            message="Stored name already in use",
            error_type="StoredNameTaken",
            details={"stored_name": stored_name},
            message_key="file.stored_name.taken",
        )


class SlugGenerationExhaustedException(BusinessException):
    def __init__(self, base: str, attempts: int, *, what: str = "slug"):
        super().__init__(
            code=BusinessCode.GENERATION_EXHAUSTED,
            message=f"Failed to generate a unique {what}",
            error_type="GenerationExhausted",
            details={"base": base, "attempts": attempts, "what": what},
            message_key="file.generation.exhausted",
        )


class StoredObjectMissingException(BusinessException):
    """Record is live but the backend has no bytes for it."""

    def __init__(self, file_id: Optional[int], storage_key: str):
        super().__init__(
            code=BusinessCode.STORAGE_INCONSISTENT,
            message="Stored file is missing",
            error_type="StoredObjectMissing",
            details={"file_id": file_id, "storage_key": storage_key},
            message_key="file.storage.missing",
        )


class PasswordHashingException(BusinessException):
    def __init__(self, reason: str):
        super().__init__(
            code=BusinessCode.SYSTEM_ERROR,
            message="Failed to hash password",
            error_type="PasswordHashingFailed",
            details={"reason": reason},
            message_key="file.password.hash_failed",
        )


class FileTooLargeException(BusinessException):
    def __init__(self, size: int, max_size: int):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message="File too large",
            error_type="FileTooLarge",
            details={"size": size, "max_size": max_size},
            field="file",
            message_key="file.size.too_large",
        )
