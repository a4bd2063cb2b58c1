"""
Configuration for the UiPath SDK.

The SDK authenticates in exactly one of two modes:

- Secret mode: a pre-issued personal access token (``SecretConfig``)
- OAuth mode: authorization code flow with PKCE (``OAuthConfig``)

Both share the platform coordinates in ``BaseConfig``. Configuration can be
built programmatically with ``create_config`` or loaded from ``UIPATH_*``
environment variables with ``load_config``.
"""

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional, Union
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_BASE_URL
from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .auth.token_storage import FlowContext

logger = logging.getLogger(__name__)


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass(frozen=True)
class BaseConfig:
    """
    Platform coordinates shared by both authentication modes.

    Attributes:
        org_name: Organization (account) logical name
        tenant_name: Tenant logical name
        base_url: Platform root URL (trailing slash is stripped)
    """

    org_name: str
    tenant_name: str
    base_url: str = DEFAULT_BASE_URL

    def __post_init__(self) -> None:
        """Normalize and validate configuration after initialization."""
        if not self.base_url:
            raise ConfigurationError("base_url cannot be empty")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        if not _is_http_url(self.base_url):
            raise ConfigurationError(f"base_url must be an http(s) URL, got {self.base_url!r}")

        if not self.org_name:
            raise ConfigurationError("org_name cannot be empty")

        if not self.tenant_name:
            raise ConfigurationError("tenant_name cannot be empty")

    @property
    def is_oauth(self) -> bool:
        return False


@dataclass(frozen=True)
class SecretConfig(BaseConfig):
    """Secret mode: authenticate with a pre-issued bearer token."""

    secret: str = ""

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.secret:
            raise ConfigurationError("secret cannot be empty")

    def __repr__(self) -> str:
        return (
            f"SecretConfig(base_url={self.base_url!r}, org_name={self.org_name!r}, "
            f"tenant_name={self.tenant_name!r}, secret='***')"
        )


@dataclass(frozen=True)
class OAuthConfig(BaseConfig):
    """
    OAuth mode: authorization code flow with PKCE.

    Attributes:
        client_id: External application client id
        redirect_uri: Registered redirect URI receiving the authorization code
        scope: Space separated scopes (offline_access is always added)
    """

    client_id: str = ""
    redirect_uri: str = ""
    scope: str = ""

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.client_id:
            raise ConfigurationError("client_id cannot be empty")

        if not self.redirect_uri or not _is_http_url(self.redirect_uri):
            raise ConfigurationError(
                f"redirect_uri must be an http(s) URL, got {self.redirect_uri!r}"
            )

        if not self.scope or not self.scope.strip():
            raise ConfigurationError("scope cannot be empty")

    @property
    def is_oauth(self) -> bool:
        return True

    def merge_flow_context(self, context: "FlowContext") -> "OAuthConfig":
        """
        Overlay the coordinates of an in-progress authorization flow.

        A callback must be completed against the same client, tenant and
        redirect URI the flow was started with.

        Args:
            context: Flow context persisted when the flow was initiated

        Returns:
            New OAuthConfig using the stored context's values
        """
        return replace(
            self,
            base_url=context.base_url,
            org_name=context.org_name,
            tenant_name=context.tenant_name,
            client_id=context.client_id,
            redirect_uri=context.redirect_uri,
            scope=context.scope or self.scope,
        )


Config = Union[SecretConfig, OAuthConfig]


def create_config(
    org_name: str,
    tenant_name: str,
    base_url: Optional[str] = None,
    secret: Optional[str] = None,
    client_id: Optional[str] = None,
    redirect_uri: Optional[str] = None,
    scope: Optional[str] = None,
) -> Config:
    """
    Build the configuration for whichever authentication mode was supplied.

    Args:
        org_name: Organization name
        tenant_name: Tenant name
        base_url: Platform URL (default: https://cloud.uipath.com)
        secret: Pre-issued access token (secret mode)
        client_id: OAuth client id (OAuth mode)
        redirect_uri: OAuth redirect URI (OAuth mode)
        scope: OAuth scopes (OAuth mode)

    Returns:
        SecretConfig or OAuthConfig

    Raises:
        ConfigurationError: If both modes, or neither mode, are fully specified

    Example:
        >>> config = create_config("acme", "DefaultTenant", secret="pat_123")
        >>> config.is_oauth
        False
    """
    base_url = base_url or DEFAULT_BASE_URL
    oauth_fields = (client_id, redirect_uri, scope)
    has_oauth = all(oauth_fields)

    if secret and any(oauth_fields):
        raise ConfigurationError(
            "Provide either secret or OAuth fields (client_id, redirect_uri, scope), not both"
        )

    if secret:
        return SecretConfig(
            base_url=base_url, org_name=org_name, tenant_name=tenant_name, secret=secret
        )

    if has_oauth:
        return OAuthConfig(
            base_url=base_url,
            org_name=org_name,
            tenant_name=tenant_name,
            client_id=client_id,
            redirect_uri=redirect_uri,
            scope=scope,
        )

    raise ConfigurationError(
        "Invalid configuration: provide either secret or all of client_id, redirect_uri and scope"
    )


class SDKSettings(BaseSettings):
    """
    SDK settings loaded from environment variables.

    Environment variables:
        UIPATH_BASE_URL: Platform URL (default: https://cloud.uipath.com)
        UIPATH_ORG_NAME: Organization name
        UIPATH_TENANT_NAME: Tenant name
        UIPATH_SECRET: Pre-issued access token (secret mode)
        UIPATH_CLIENT_ID / UIPATH_REDIRECT_URI / UIPATH_SCOPE: OAuth mode
        UIPATH_TOKEN_FILE: Token store path used by the authorize script
    """

    model_config = SettingsConfigDict(env_prefix="UIPATH_", extra="ignore")

    base_url: str = DEFAULT_BASE_URL
    org_name: Optional[str] = None
    tenant_name: Optional[str] = None
    secret: Optional[str] = None
    client_id: Optional[str] = None
    redirect_uri: Optional[str] = None
    scope: Optional[str] = None
    token_file: str = "~/.uipath/session.json"


def load_config(settings: Optional[SDKSettings] = None) -> Config:
    """
    Load configuration from environment variables.

    Args:
        settings: Pre-built settings (reads the environment when omitted)

    Returns:
        SecretConfig or OAuthConfig

    Raises:
        ConfigurationError: If required environment variables are missing
    """
    settings = settings or SDKSettings()

    if not settings.org_name or not settings.tenant_name:
        raise ConfigurationError(
            "Missing UiPath configuration. Set environment variables:\n"
            "  UIPATH_ORG_NAME=your_org\n"
            "  UIPATH_TENANT_NAME=your_tenant\n"
            "and either UIPATH_SECRET or UIPATH_CLIENT_ID, UIPATH_REDIRECT_URI, UIPATH_SCOPE"
        )

    config = create_config(
        org_name=settings.org_name,
        tenant_name=settings.tenant_name,
        base_url=settings.base_url,
        secret=settings.secret,
        client_id=settings.client_id,
        redirect_uri=settings.redirect_uri,
        scope=settings.scope,
    )
    logger.debug(f"Loaded {'OAuth' if config.is_oauth else 'secret'} configuration from environment")
    return config
