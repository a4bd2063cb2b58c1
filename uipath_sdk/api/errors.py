"""
Error response parsing and typed error creation.

Platform services report failures in different JSON shapes. Each shape has
a (can_parse, parse) strategy; the first strategy that accepts a body wins
and the last one accepts anything. The resulting ParsedErrorInfo is turned
into a UiPathError subclass by HTTP status.

Example:
    >>> info = parse_error_response(response)
    >>> raise create_from_http_status(response.status_code, info)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

import requests

from ..constants import REQUEST_ID_HEADER, ErrorMessages
from ..exceptions import (
    AuthenticationError,
    AuthorizationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    UiPathError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass
class ParsedErrorInfo:
    """
    Normalized error payload.

    Attributes:
        message: Human readable message
        code: Service specific error code, if any
        details: Raw payload or parse diagnostics
        request_id: Backend trace id or x-request-id header
    """

    message: str
    code: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    request_id: Optional[str] = None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _trace_id(body: Dict[str, Any]) -> Optional[str]:
    trace_id = body.get("traceId")
    return str(trace_id) if trace_id else None


# Orchestrator: {"message": "...", "errorCode": 1002, "traceId": "..."}
def _is_orchestrator_error(body: Any) -> bool:
    return isinstance(body.get("message"), str) and _is_number(body.get("errorCode"))


def _parse_orchestrator_error(body: Dict[str, Any], response: requests.Response) -> ParsedErrorInfo:
    return ParsedErrorInfo(
        message=body["message"],
        code=str(body["errorCode"]),
        details=body,
        request_id=_trace_id(body),
    )


# Data Service: {"error": "...", "traceId": "..."}
def _is_entity_error(body: Any) -> bool:
    return isinstance(body.get("error"), str)


def _parse_entity_error(body: Dict[str, Any], response: requests.Response) -> ParsedErrorInfo:
    code = body.get("code")
    return ParsedErrorInfo(
        message=body["error"],
        code=str(code) if code is not None else None,
        details=body,
        request_id=_trace_id(body),
    )


# Workflow engine (RFC 7807 problem details):
# {"type": "...", "title": "...", "status": 400, "errors": {"field": ["msg"]}}
def _is_problem_details(body: Any) -> bool:
    return (
        isinstance(body.get("type"), str)
        and isinstance(body.get("title"), str)
        and _is_number(body.get("status"))
    )


def _format_validation_errors(errors: Any) -> str:
    if not isinstance(errors, dict) or not errors:
        return ""
    parts = []
    for field_name, messages in errors.items():
        if isinstance(messages, (list, tuple)):
            text = ", ".join(str(m) for m in messages)
        else:
            text = str(messages)
        parts.append(f"{field_name}: {text}")
    return "; ".join(parts)


def _parse_problem_details(body: Dict[str, Any], response: requests.Response) -> ParsedErrorInfo:
    message = body["title"]
    validation = _format_validation_errors(body.get("errors"))
    if validation:
        message = f"{message}. Validation errors: {validation}"
    return ParsedErrorInfo(
        message=message,
        code=str(body["status"]),
        details=body,
        request_id=_trace_id(body),
    )


def _is_any(body: Any) -> bool:
    return True


def _parse_generic(body: Any, response: requests.Response) -> ParsedErrorInfo:
    return ParsedErrorInfo(
        message=response.reason or ErrorMessages.UNKNOWN_ERROR,
        code=str(response.status_code),
        details=body if isinstance(body, dict) else {"body": body},
    )


ErrorStrategy = Tuple[Callable[[Any], bool], Callable[[Any, requests.Response], ParsedErrorInfo]]

# Order matters: first match wins, the generic parser accepts anything.
ERROR_STRATEGIES: List[ErrorStrategy] = [
    (_is_orchestrator_error, _parse_orchestrator_error),
    (_is_entity_error, _parse_entity_error),
    (_is_problem_details, _parse_problem_details),
]
GENERIC_STRATEGY: ErrorStrategy = (_is_any, _parse_generic)


def parse_error_response(response: requests.Response) -> ParsedErrorInfo:
    """
    Normalize a non-2xx response body.

    Args:
        response: Failed HTTP response

    Returns:
        ParsedErrorInfo; request_id falls back to the x-request-id header
    """
    header_request_id = response.headers.get(REQUEST_ID_HEADER)

    try:
        body = response.json()
    except ValueError as e:
        text = response.text
        return ParsedErrorInfo(
            message=response.reason or text or ErrorMessages.UNKNOWN_ERROR,
            code=str(response.status_code),
            details={"parseError": str(e), "responseText": text},
            request_id=header_request_id,
        )

    info = None
    if isinstance(body, dict):
        for can_parse, parse in ERROR_STRATEGIES:
            if can_parse(body):
                info = parse(body, response)
                break
    if info is None:
        info = GENERIC_STRATEGY[1](body, response)

    if not info.request_id:
        info.request_id = header_request_id
    return info


STATUS_ERRORS: Dict[int, Type[UiPathError]] = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthorizationError,
    404: NotFoundError,
    429: RateLimitError,
}


def create_from_http_status(status_code: int, info: ParsedErrorInfo) -> UiPathError:
    """
    Build the typed error for an HTTP status.

    Args:
        status_code: HTTP status code
        info: Parsed error payload

    Returns:
        UiPathError subclass instance (not raised)
    """
    error_class = STATUS_ERRORS.get(status_code)
    message = info.message

    if error_class is None:
        if status_code >= 500:
            error_class = ServerError
        else:
            error_class = ValidationError
            message = f"{message} (HTTP {status_code})"

    return error_class(
        message=message,
        status_code=status_code,
        request_id=info.request_id,
        details=info.details,
    )


def create_network_error(error: BaseException) -> NetworkError:
    """
    Classify a transport failure.

    Args:
        error: Exception raised by the HTTP transport

    Returns:
        NetworkError with a timed out or generic message
    """
    if isinstance(error, requests.Timeout) or "timeout" in str(error).lower():
        return NetworkError(ErrorMessages.REQUEST_TIMEOUT)
    return NetworkError(str(error) or ErrorMessages.NETWORK_ERROR)


def create_aborted_error() -> NetworkError:
    return NetworkError(ErrorMessages.REQUEST_ABORTED)
