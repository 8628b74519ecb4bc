"""ErrorType-to-ErrorKind mapping registry.

Provides the single mapping from classified error categories to the two
caller-facing kinds, so hosts can decide how to surface a failure. Keys are
``ErrorType`` values; ``ErrorType`` members compare equal to them.

Usage:
    from api_resilience.core.errors.base import error_kind_for

    kind = error_kind_for(classified.type)
    if kind is ErrorKind.CALLER_INPUT:
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Type, Union

from api_resilience.core.errors.resilience import (
    ApiCallError,
    CallerInputError,
    ErrorKind,
    OperationalError,
)

if TYPE_CHECKING:
    from api_resilience.core.resilience.models import ErrorType

ERROR_KIND_MAPPINGS: Dict[str, ErrorKind] = {
    "validation": ErrorKind.CALLER_INPUT,
    "authentication": ErrorKind.OPERATIONAL,
    "rate_limit": ErrorKind.OPERATIONAL,
    "network": ErrorKind.OPERATIONAL,
    "api_error": ErrorKind.OPERATIONAL,
    "unknown": ErrorKind.OPERATIONAL,
}

ERROR_CLASSES: Dict[ErrorKind, Type[ApiCallError]] = {
    ErrorKind.CALLER_INPUT: CallerInputError,
    ErrorKind.OPERATIONAL: OperationalError,
}


def error_kind_for(error_type: Union["ErrorType", str]) -> ErrorKind:
    """Return the caller-facing kind for an error category."""
    key = getattr(error_type, "value", error_type)
    return ERROR_KIND_MAPPINGS.get(key, ErrorKind.OPERATIONAL)
