"""
Authenticated HTTP client for the UiPath platform API.

This module provides the request pipeline used by every service:
- Tenant scoped URL construction
- Bearer token attachment (refreshing expired OAuth tokens first)
- Header layering (execution context, auth, client defaults, per call)
- Normalization of error payloads into the UiPathError taxonomy
- Cancellation through a threading.Event
- Optional retry with exponential backoff for retryable errors
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

import requests
from requests.structures import CaseInsensitiveDict

from ..auth.token_manager import TokenManager
from ..config import Config
from ..constants import CONTENT_TYPE_JSON, CONTENT_TYPE_XML
from ..context import ExecutionContext
from ..exceptions import NetworkError, UiPathError
from .errors import (
    create_aborted_error,
    create_from_http_status,
    create_network_error,
    parse_error_response,
)

logger = logging.getLogger(__name__)


class _NoContent:
    """Marker returned for 204 / empty responses."""

    def __repr__(self) -> str:
        return "NO_CONTENT"

    def __bool__(self) -> bool:
        return False


NO_CONTENT = _NoContent()


def _format_param(value: Any) -> Any:
    # OData expects lowercase booleans ($count=true)
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


@dataclass
class RequestOptions:
    """
    Per-call request options.

    Attributes:
        params: Query parameters (None values are dropped)
        headers: Headers overriding every other layer
        body: JSON-serializable body, or str/bytes sent as-is
        timeout: Seconds before the call fails (no timeout by default)
        cancel_event: When set, the call fails with "Request was aborted"
    """

    params: Optional[Dict[str, Any]] = None
    headers: Optional[Dict[str, str]] = None
    body: Any = None
    timeout: Optional[float] = None
    cancel_event: Optional[threading.Event] = None


class ApiClient:
    """
    Request pipeline for tenant scoped platform endpoints.

    Example:
        client = ApiClient(config, token_manager)
        folders = client.get("orchestrator_/odata/Folders", RequestOptions(params={"$top": 10}))
    """

    def __init__(
        self,
        config: Config,
        token_manager: TokenManager,
        execution_context: Optional[ExecutionContext] = None,
        session: Optional[requests.Session] = None,
        default_headers: Optional[Dict[str, str]] = None,
        max_retries: int = 0,
        retry_delay: float = 1.0,
    ):
        """
        Initialize API client.

        Args:
            config: SDK configuration (base URL, org and tenant)
            token_manager: Supplies valid bearer tokens
            execution_context: Shared context headers
            session: HTTP session (creates one if not provided)
            default_headers: Headers added to every request
            max_retries: Retries for retryable errors (default: none)
            retry_delay: Base delay in seconds (exponential backoff)
        """
        self.config = config
        self.token_manager = token_manager
        self.execution_context = execution_context or ExecutionContext()
        self.session = session or requests.Session()
        self.default_headers: Dict[str, str] = dict(default_headers or {})
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def build_url(self, path: str) -> str:
        """
        Construct the tenant scoped URL for a path.

        Args:
            path: Endpoint path; a leading "/" is ignored

        Returns:
            {base_url}/{org_name}/{tenant_name}/{path}
        """
        return (
            f"{self.config.base_url}/{self.config.org_name}/"
            f"{self.config.tenant_name}/{path.lstrip('/')}"
        )

    def set_default_headers(self, headers: Dict[str, str]) -> None:
        self.default_headers.update(headers)

    def _build_headers(self, token: str, call_headers: Optional[Dict[str, str]]) -> CaseInsensitiveDict:
        headers = CaseInsensitiveDict(self.execution_context.get_headers())
        headers["Authorization"] = f"Bearer {token}"
        headers["Content-Type"] = CONTENT_TYPE_JSON
        headers.update(self.default_headers)
        if call_headers:
            headers.update(call_headers)
        return headers

    def request(self, method: str, path: str, options: Optional[RequestOptions] = None) -> Any:
        """
        Send an authenticated request.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Endpoint path relative to the tenant
            options: Per-call options

        Returns:
            Decoded JSON body, raw text when XML was requested, or
            NO_CONTENT for 204 / empty responses

        Raises:
            AuthenticationError: If no valid token can be obtained (or 401)
            AuthorizationError: 403
            ValidationError: 400 and unmapped 4xx
            NotFoundError: 404
            RateLimitError: 429
            ServerError: 5xx
            NetworkError: Transport failure, timeout or cancellation
        """
        options = options or RequestOptions()
        retry_count = 0

        while True:
            try:
                return self._send(method.upper(), path, options)
            except UiPathError as e:
                if retry_count >= self.max_retries or not e.is_retryable:
                    raise
                delay = self._calculate_backoff_delay(retry_count)
                logger.warning(
                    f"{e.type}: {e.message}. Retrying in {delay}s "
                    f"(attempt {retry_count + 1}/{self.max_retries})"
                )
                self._sleep(delay, options.cancel_event)
                retry_count += 1

    def _send(self, method: str, path: str, options: RequestOptions) -> Any:
        self._check_cancelled(options.cancel_event)

        token = self.token_manager.get_valid_token()
        url = self.build_url(path)
        headers = self._build_headers(token, options.headers)
        params = None
        if options.params:
            params = {
                k: _format_param(v) for k, v in options.params.items() if v is not None
            }

        json_body, data = None, None
        if isinstance(options.body, (str, bytes)):
            data = options.body
        elif options.body is not None:
            json_body = options.body

        logger.debug(f"{method} {url}")
        if params:
            logger.debug(f"  Params: {params}")

        try:
            response = self.session.request(
                method,
                url,
                headers=dict(headers),
                params=params,
                json=json_body,
                data=data,
                timeout=options.timeout,
            )
        except requests.RequestException as e:
            if options.cancel_event is not None and options.cancel_event.is_set():
                raise create_aborted_error() from e
            logger.error(f"Network error: {method} {url}: {e}")
            raise create_network_error(e) from e

        self._check_cancelled(options.cancel_event)
        logger.debug(f"Response: {response.status_code}")

        if not 200 <= response.status_code < 300:
            info = parse_error_response(response)
            error = create_from_http_status(response.status_code, info)
            logger.warning(
                f"{method} {url} failed: {response.status_code} {error.type}: {error.message}"
            )
            raise error

        if response.status_code == 204 or not response.content:
            return NO_CONTENT

        if CONTENT_TYPE_XML in headers.get("Accept", ""):
            return response.text

        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(
                f"Invalid JSON in response: {e}",
                status_code=response.status_code,
                retryable=False,
            ) from e

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise create_aborted_error()

    def _sleep(self, delay: float, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is None:
            time.sleep(delay)
        elif cancel_event.wait(delay):
            raise create_aborted_error()

    def _calculate_backoff_delay(self, retry_count: int) -> float:
        """Exponential backoff: retry_delay * 2^retry_count."""
        return self.retry_delay * (2 ** retry_count)

    def get(self, path: str, options: Optional[RequestOptions] = None) -> Any:
        return self.request("GET", path, options)

    def post(self, path: str, body: Any = None, options: Optional[RequestOptions] = None) -> Any:
        return self.request("POST", path, self._with_body(body, options))

    def put(self, path: str, body: Any = None, options: Optional[RequestOptions] = None) -> Any:
        return self.request("PUT", path, self._with_body(body, options))

    def patch(self, path: str, body: Any = None, options: Optional[RequestOptions] = None) -> Any:
        return self.request("PATCH", path, self._with_body(body, options))

    def delete(self, path: str, options: Optional[RequestOptions] = None) -> Any:
        return self.request("DELETE", path, options)

    @staticmethod
    def _with_body(body: Any, options: Optional[RequestOptions]) -> RequestOptions:
        options = options or RequestOptions()
        if body is None:
            return options
        return replace(options, body=body)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()
