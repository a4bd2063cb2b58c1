"""
Platform API request pipeline.

Public API:
    ApiClient: Authenticated request pipeline
    RequestOptions: Per-call options (params, headers, body, timeout, cancellation)
    NO_CONTENT: Returned for 204 responses
    parse_error_response / create_from_http_status / create_network_error:
        Error normalization
"""

from .client import NO_CONTENT, ApiClient, RequestOptions
from .errors import (
    ParsedErrorInfo,
    create_from_http_status,
    create_network_error,
    parse_error_response,
)

__all__ = [
    "ApiClient",
    "RequestOptions",
    "NO_CONTENT",
    "ParsedErrorInfo",
    "parse_error_response",
    "create_from_http_status",
    "create_network_error",
]
