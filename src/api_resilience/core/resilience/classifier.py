"""Error classification for unified retry and reporting decisions.

Maps any raw failure (an HTTP response, a transport/socket exception, or an
arbitrary exception) to a :class:`ClassifiedError`.

Classification rules (applied in order):
    1. Already-classified ``ResilienceError`` -> its carried classification
    2. HTTP-like response (``httpx.Response`` or an error with ``.response``)
       -> dispatch on status code
    3. Transport error code (explicit ``.code``, ``OSError`` errno, socket/ssl
       exception class, cause chain, message heuristics) -> Network
    4. Validation-named errors -> Validation
    5. Authentication/token/credential messages -> Authentication
    6. Default -> Unknown, not retryable

:func:`classify` never raises.
"""

from __future__ import annotations

import asyncio
import errno
import json
import logging
import re
import socket
import ssl
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

import httpx

from api_resilience.core.errors.resilience import ResilienceError
from api_resilience.core.resilience.models import ClassifiedError, ErrorType

logger = logging.getLogger(__name__)

DEFAULT_OPERATION = "api_operation"
DEFAULT_SERVICE = "remote API"

# Transport error codes
ETIMEDOUT = "ETIMEDOUT"
ECONNREFUSED = "ECONNREFUSED"
ENOTFOUND = "ENOTFOUND"
ECONNRESET = "ECONNRESET"
ECONNABORTED = "ECONNABORTED"
ENETUNREACH = "ENETUNREACH"
CERT_VERIFY_FAILED = "CERT_VERIFY_FAILED"

TRANSPORT_CODES = frozenset(
    {ETIMEDOUT, ECONNREFUSED, ENOTFOUND, ECONNRESET, ECONNABORTED, ENETUNREACH}
)

_ERRNO_CODES: Dict[int, str] = {
    errno.ETIMEDOUT: ETIMEDOUT,
    errno.ECONNREFUSED: ECONNREFUSED,
    errno.ECONNRESET: ECONNRESET,
    errno.ECONNABORTED: ECONNABORTED,
    errno.ENETUNREACH: ENETUNREACH,
}

# Ordered (substring, code) pairs for messages that carry no structured code
_MESSAGE_CODES = (
    ("certificate", CERT_VERIFY_FAILED),
    ("connection refused", ECONNREFUSED),
    ("name or service not known", ENOTFOUND),
    ("nodename nor servname", ENOTFOUND),
    ("getaddrinfo failed", ENOTFOUND),
    ("temporary failure in name resolution", ENOTFOUND),
    ("no address associated with hostname", ENOTFOUND),
    ("connection reset", ECONNRESET),
    ("socket hang up", ECONNABORTED),
    ("server disconnected", ECONNABORTED),
    ("connection aborted", ECONNABORTED),
    ("network is unreachable", ENETUNREACH),
    ("timed out", ETIMEDOUT),
    ("timeout", ETIMEDOUT),
)

_SERVER_ERROR_MESSAGES = {
    500: "Internal server error - {service} is experiencing issues",
    502: "Bad gateway - {service} gateway error",
    503: "Service unavailable - {service} is temporarily unavailable",
    504: "Gateway timeout - {service} response timeout",
}

_AUTH_KEYWORDS = ("auth", "token", "credential")

_MAX_CHAIN_DEPTH = 10

Classifier = Callable[..., ClassifiedError]


def classify(
    raw: Any,
    operation: str = DEFAULT_OPERATION,
    *,
    timeout_ms: Optional[int] = None,
    service: str = DEFAULT_SERVICE,
) -> ClassifiedError:
    """Classify a raw failure into a :class:`ClassifiedError`.

    Deterministic apart from the ``timestamp`` field, free of side effects,
    and never raises.

    Args:
        raw: The failure: an exception, an ``httpx.Response``, or any object
            exposing a ``response``/``code``/``message``.
        operation: Label of the failing operation, used in messages.
        timeout_ms: Timeout that applied, reported for timeout failures.
        service: Human-readable name of the remote service.

    Returns:
        The classified error. Falls back to ``Unknown`` (code 500, not
        retryable) when nothing more specific matches.
    """
    try:
        return _classify(raw, operation, timeout_ms, service)
    except Exception:
        logger.exception("Error classification failed for %s", operation)
        return ClassifiedError(
            type=ErrorType.UNKNOWN,
            code=500,
            message="Unknown error occurred: No error message available",
            retryable=False,
            details={},
            original_error=raw,
        )


def _classify(
    raw: Any,
    operation: str,
    timeout_ms: Optional[int],
    service: str,
) -> ClassifiedError:
    if isinstance(raw, ResilienceError):
        return raw.classified

    response = _extract_response(raw)
    if response is not None:
        return _classify_http(response, raw, service)

    code = transport_error_code(raw)
    if code is not None:
        return _classify_network(code, raw, operation, timeout_ms, service)

    message = _message_of(raw)

    if isinstance(raw, (ConnectionError, httpx.TransportError)):
        return _network_error(
            f"Network error during {operation}: {message or 'Unknown network error'}",
            raw,
            operation,
            None,
            retryable=True,
            original_message=message,
        )

    if type(raw).__name__ == "ValidationError" or "validation" in message.lower():
        field_errors = _field_errors(raw)
        return ClassifiedError(
            type=ErrorType.VALIDATION,
            code=400,
            message=_validation_message(field_errors, message),
            retryable=False,
            details=field_errors,
            original_error=raw,
        )

    lowered = message.lower()
    if any(keyword in lowered for keyword in _AUTH_KEYWORDS):
        return ClassifiedError(
            type=ErrorType.AUTHENTICATION,
            code=401,
            message=_authentication_message(lowered),
            retryable=False,
            details={},
            original_error=raw,
        )

    return ClassifiedError(
        type=ErrorType.UNKNOWN,
        code=500,
        message=f"Unknown error occurred: {message or 'No error message available'}",
        retryable=False,
        details={"original_message": message or None},
        original_error=raw,
    )


# ---------------------------------------------------------------------------
# HTTP responses
# ---------------------------------------------------------------------------


def _safe_getattr(obj: Any, name: str) -> Any:
    # httpx raises RuntimeError for unset request/response properties
    try:
        return getattr(obj, name, None)
    except Exception:
        return None


def _status_of(response: Any) -> Optional[int]:
    for attr in ("status_code", "status"):
        value = _safe_getattr(response, attr)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _extract_response(raw: Any) -> Any:
    if isinstance(raw, httpx.Response):
        return raw
    response = _safe_getattr(raw, "response")
    if response is not None and _status_of(response) is not None:
        return response
    return None


def _response_body(response: Any) -> Dict[str, Any]:
    json_method = _safe_getattr(response, "json")
    if callable(json_method):
        try:
            data = json_method()
        except Exception:
            data = None
        if isinstance(data, Mapping):
            return dict(data)
    data = _safe_getattr(response, "data")
    if isinstance(data, Mapping):
        return dict(data)
    return {}


def parse_retry_after(headers: Any) -> Optional[int]:
    """Parse a ``Retry-After`` header value in whole seconds.

    The header name is matched case-insensitively. Leading digits are
    honoured (``"60"`` and ``"60.5"`` both give 60); anything else,
    including HTTP-date values, yields ``None``.

    Args:
        headers: Response headers (any mapping, including ``httpx.Headers``).

    Returns:
        Seconds to wait, or ``None`` if the header is missing or unparseable.
    """
    if not headers:
        return None
    try:
        items = list(headers.items())
    except Exception:
        return None

    for name, value in items:
        if str(name).lower() != "retry-after":
            continue
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        match = re.match(r"\s*(\d+)", str(value))
        return int(match.group(1)) if match else None
    return None


def _classify_http(response: Any, raw: Any, service: str) -> ClassifiedError:
    status = _status_of(response)
    assert status is not None
    body = _response_body(response)

    if status == 400:
        errors = body.get("errors")
        message = (
            f"Bad request: {json.dumps(errors, default=str)}"
            if errors
            else "Bad request - Invalid parameters or request format"
        )
        return _http_error(ErrorType.VALIDATION, status, message, False, body, raw)

    if status == 401:
        return _http_error(
            ErrorType.AUTHENTICATION,
            status,
            "Unauthorized - Invalid API credentials or expired token",
            False,
            body,
            raw,
        )

    if status == 403:
        return _http_error(
            ErrorType.AUTHENTICATION,
            status,
            "Forbidden - Insufficient permissions for this operation",
            False,
            body,
            raw,
        )

    if status == 404:
        detail = body.get("message")
        message = (
            f"Resource not found - {detail}"
            if isinstance(detail, str) and detail
            else "Resource not found - The requested resource does not exist"
        )
        return _http_error(ErrorType.API_ERROR, status, message, False, body, raw)

    if status == 429:
        retry_after = parse_retry_after(_safe_getattr(response, "headers"))
        message = f"Rate limit exceeded - Too many requests to {service}"
        if retry_after:
            message = f"{message}. Retry after {retry_after} seconds"
        else:
            message = f"{message}. Please wait before making more requests"
        return ClassifiedError(
            type=ErrorType.RATE_LIMIT,
            code=status,
            message=message,
            retryable=True,
            retry_after_seconds=retry_after,
            details=body,
            original_error=raw,
        )

    if status in _SERVER_ERROR_MESSAGES:
        message = _SERVER_ERROR_MESSAGES[status].format(service=service)
        return _http_error(ErrorType.API_ERROR, status, message, True, body, raw)

    detail = body.get("message")
    message = f"HTTP {status}: {detail if isinstance(detail, str) and detail else 'Unknown API error'}"
    return _http_error(ErrorType.API_ERROR, status, message, status >= 500, body, raw)


def _http_error(
    error_type: ErrorType,
    status: int,
    message: str,
    retryable: bool,
    body: Dict[str, Any],
    raw: Any,
) -> ClassifiedError:
    return ClassifiedError(
        type=error_type,
        code=status,
        message=message,
        retryable=retryable,
        details=body,
        original_error=raw,
    )


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------


def _iter_chain(error: Any) -> Iterator[Any]:
    seen = set()
    current = error
    depth = 0
    while current is not None and id(current) not in seen and depth < _MAX_CHAIN_DEPTH:
        seen.add(id(current))
        yield current
        current = _safe_getattr(current, "__cause__") or _safe_getattr(current, "__context__")
        depth += 1


def is_certificate_code(code: str) -> bool:
    return code.startswith("CERT_") or "CERT" in code and "TLS" in code


def _structured_code(error: Any) -> Optional[str]:
    explicit = _safe_getattr(error, "code")
    if isinstance(explicit, str):
        normalized = explicit.upper()
        if normalized in TRANSPORT_CODES or is_certificate_code(normalized):
            return normalized

    if isinstance(error, ssl.SSLCertVerificationError):
        return CERT_VERIFY_FAILED
    if isinstance(error, ssl.SSLError) and "certificate" in str(error).lower():
        return CERT_VERIFY_FAILED
    if isinstance(error, socket.gaierror):
        return ENOTFOUND
    if isinstance(error, ConnectionRefusedError):
        return ECONNREFUSED
    if isinstance(error, ConnectionResetError):
        return ECONNRESET
    if isinstance(error, ConnectionAbortedError):
        return ECONNABORTED
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return ETIMEDOUT
    if isinstance(error, OSError) and error.errno in _ERRNO_CODES:
        return _ERRNO_CODES[error.errno]
    if isinstance(error, BaseException) and "timeout" in type(error).__name__.lower():
        return ETIMEDOUT
    return None


def transport_error_code(raw: Any) -> Optional[str]:
    """Derive a transport error code (``ECONNREFUSED``, ``CERT_*``, ...) for a failure.

    Looks at the failure itself, then at its ``__cause__``/``__context__``
    chain (httpx wraps the underlying ``OSError``), then at message text.

    Returns:
        The code, or ``None`` if the failure does not look transport-related.
    """
    for error in _iter_chain(raw):
        code = _structured_code(error)
        if code is not None:
            return code

    # Field names such as "timeout_ms" must not read as transport failures
    if type(raw).__name__ == "ValidationError":
        return None

    message = _message_of(raw).lower()
    for needle, code in _MESSAGE_CODES:
        if needle in message:
            return code
    return None


def _classify_network(
    code: str,
    raw: Any,
    operation: str,
    timeout_ms: Optional[int],
    service: str,
) -> ClassifiedError:
    if is_certificate_code(code):
        return _network_error(
            f"SSL/TLS error during {operation} - Certificate validation failed",
            raw,
            operation,
            code,
            retryable=False,
            reason=_safe_getattr(raw, "reason"),
        )

    if code == ETIMEDOUT:
        effective_timeout = _safe_getattr(raw, "timeout_ms") or timeout_ms
        if effective_timeout:
            message = (
                f"Network timeout during {operation} - Operation exceeded {effective_timeout}ms limit"
            )
        else:
            message = f"Network timeout during {operation} - {service} did not respond in time"
        return _network_error(
            message,
            raw,
            operation,
            code,
            retryable=True,
            status=408,
            timeout_ms=effective_timeout,
        )

    if code == ECONNREFUSED:
        return _network_error(
            f"Connection refused during {operation} - Unable to connect to {service} server",
            raw,
            operation,
            code,
            retryable=True,
            **_endpoint_details(raw),
        )

    if code == ENOTFOUND:
        return _network_error(
            f"DNS resolution failed during {operation} - Cannot resolve {service} hostname",
            raw,
            operation,
            code,
            retryable=True,
            hostname=_safe_getattr(raw, "hostname"),
        )

    if code == ENETUNREACH:
        message = f"Network unreachable during {operation} - Cannot reach {service} server"
    elif code == ECONNRESET:
        message = f"Connection reset during {operation} - Server closed the connection unexpectedly"
    else:
        message = f"Connection aborted during {operation} - Socket connection was terminated"
    return _network_error(message, raw, operation, code, retryable=True)


def _endpoint_details(raw: Any) -> Dict[str, Any]:
    details: Dict[str, Any] = {}
    for attr in ("hostname", "port"):
        value = _safe_getattr(raw, attr)
        if value is not None:
            details[attr] = value
    return details


def _network_error(
    message: str,
    raw: Any,
    operation: str,
    code: Optional[str],
    *,
    retryable: bool,
    status: int = 0,
    **extra: Any,
) -> ClassifiedError:
    details: Dict[str, Any] = {"operation_name": operation, "error_code": code}
    details.update({key: value for key, value in extra.items() if value is not None})
    return ClassifiedError(
        type=ErrorType.NETWORK,
        code=status,
        message=message,
        retryable=retryable,
        details=details,
        original_error=raw,
    )


# ---------------------------------------------------------------------------
# Validation / authentication helpers
# ---------------------------------------------------------------------------


def _message_of(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, BaseException):
        return str(raw)
    message = _safe_getattr(raw, "message")
    return message if isinstance(message, str) else ""


def _field_errors(raw: Any) -> Dict[str, Any]:
    details = _safe_getattr(raw, "details")
    if isinstance(details, Mapping) and details:
        return {str(key): value for key, value in details.items()}

    # pydantic.ValidationError exposes errors() with loc/msg entries
    errors_method = _safe_getattr(raw, "errors")
    if callable(errors_method):
        try:
            entries = errors_method()
        except Exception:
            return {}
        fields: Dict[str, Any] = {}
        for entry in entries or []:
            if not isinstance(entry, Mapping):
                continue
            location = ".".join(str(part) for part in entry.get("loc", ())) or "__root__"
            fields[location] = entry.get("msg", "invalid value")
        return fields
    return {}


def _validation_message(field_errors: Dict[str, Any], message: str) -> str:
    if field_errors:
        joined = ", ".join(f"{name}: {value}" for name, value in field_errors.items())
        return f"Validation failed - {joined}"
    return f"Validation error: {message or 'Invalid input data'}"


def _authentication_message(lowered_message: str) -> str:
    if "token" in lowered_message:
        return "Authentication failed - Invalid or expired access token"
    if "credential" in lowered_message:
        return "Authentication failed - Invalid credentials provided"
    return "Authentication failed - Please check your API credentials"
