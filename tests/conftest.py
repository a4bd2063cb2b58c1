"""Shared pytest fixtures for UiPath SDK tests.

This module provides a controllable clock, in-memory storage, test
configurations and a factory for real ``requests.Response`` objects.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from unittest import mock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from uipath_sdk.auth.token_storage import TokenInfo, TokenKind
from uipath_sdk.config import OAuthConfig, SecretConfig
from uipath_sdk.ports import MemoryStorage

NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = NOW):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


def build_response(
    status_code: int = 200,
    json_data: Any = None,
    text: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    reason: Optional[str] = None,
) -> requests.Response:
    """Build a real requests.Response without any network I/O."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.encoding = "utf-8"
    response.headers = CaseInsensitiveDict(headers or {})
    if json_data is not None:
        response._content = json.dumps(json_data).encode("utf-8")
    elif text is not None:
        response._content = text.encode("utf-8")
    else:
        response._content = b""
    return response


def build_token_payload(
    access_token: str = "new_access_token",
    expires_in: int = 3600,
    refresh_token: Optional[str] = "new_refresh_token",
) -> Dict[str, Any]:
    payload = {
        "access_token": access_token,
        "token_type": "Bearer",
        "expires_in": expires_in,
        "scope": "OR.Folders offline_access",
    }
    if refresh_token is not None:
        payload["refresh_token"] = refresh_token
    return payload


@pytest.fixture
def clock():
    """Create a fake clock fixed at NOW."""
    return FakeClock()


@pytest.fixture
def storage():
    """Create empty in-memory storage."""
    return MemoryStorage()


@pytest.fixture
def make_response():
    """Factory for requests.Response objects."""
    return build_response


@pytest.fixture
def token_payload():
    """Factory for token endpoint response bodies."""
    return build_token_payload


@pytest.fixture
def session():
    """Create a mock HTTP session."""
    return mock.Mock(spec=requests.Session)


@pytest.fixture
def oauth_config():
    """Create test OAuth config."""
    return OAuthConfig(
        org_name="acme",
        tenant_name="DefaultTenant",
        base_url="https://cloud.uipath.com",
        client_id="client-123",
        redirect_uri="http://localhost:8765/callback",
        scope="OR.Folders OR.Jobs",
    )


@pytest.fixture
def secret_config():
    """Create test secret config."""
    return SecretConfig(
        org_name="acme",
        tenant_name="DefaultTenant",
        base_url="https://cloud.uipath.com",
        secret="pat_secret_token",
    )


@pytest.fixture
def valid_oauth_token():
    """OAuth token valid for another 30 minutes."""
    return TokenInfo(
        token="valid_access_token",
        kind=TokenKind.OAUTH,
        expires_at=NOW + timedelta(minutes=30),
        refresh_token="valid_refresh_token",
    )


@pytest.fixture
def expired_oauth_token():
    """OAuth token that expired a minute ago."""
    return TokenInfo(
        token="expired_access_token",
        kind=TokenKind.OAUTH,
        expires_at=NOW - timedelta(minutes=1),
        refresh_token="valid_refresh_token",
    )
