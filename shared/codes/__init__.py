"""
Shared business codes used across layers (Domain/Core/API).

This package exposes BusinessCode at `shared.codes` so the domain and the
HTTP layer agree on one numbering.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """Unified business status codes (single source of truth)."""

    # Success
    SUCCESS = 0

    # Parameter errors (1xxxx)
    PARAM_ERROR = 10000
    PARAM_MISSING = 10001
    PARAM_TYPE_ERROR = 10002
    PARAM_VALIDATION_ERROR = 10003
    SLUG_INVALID = 10004

    # Business errors (2xxxx)
    BUSINESS_ERROR = 20000
    NOT_FOUND = 20006  # Generic resource not found
    FILE_EXPIRED = 20007
    SLUG_ALREADY_TAKEN = 20008
    NAME_ALREADY_TAKEN = 20009

    # Authorization errors (3xxxx)
    PERMISSION_ERROR = 30000
    PASSWORD_REQUIRED = 30003
    PASSWORD_INVALID = 30004

    # System errors (4xxxx)
    SYSTEM_ERROR = 40000
    DATABASE_ERROR = 40001
    NETWORK_ERROR = 40002
    SERVICE_UNAVAILABLE = 40003
    STORAGE_ERROR = 40004
    STORAGE_INCONSISTENT = 40005
    GENERATION_EXHAUSTED = 40006


__all__ = ["BusinessCode"]
