"""
UiPath SDK for Python.

Authenticates against the UiPath identity provider (secret token or OAuth
2.0 authorization code flow with PKCE) and issues authorized requests to
tenant scoped platform APIs, normalizing failures into a typed error
taxonomy.

Public API:
    UiPath: SDK facade
    create_config / load_config: Configuration
    AuthService / TokenManager: Authentication
    ApiClient / RequestOptions / NO_CONTENT: Request pipeline
    MemoryStorage / FileStorage: Storage adapters

Exceptions:
    UiPathError: Base for HTTP and transport errors
    AuthenticationError, AuthorizationError, ValidationError,
    NotFoundError, RateLimitError, ServerError, NetworkError
    ConfigurationError: Invalid configuration
    TokenStorageError: Storage adapter failure
"""

from .api import NO_CONTENT, ApiClient, RequestOptions
from .auth import AuthService, FileStorage, FlowContext, TokenInfo, TokenKind, TokenManager
from .config import BaseConfig, Config, OAuthConfig, SDKSettings, SecretConfig, create_config, load_config
from .context import ExecutionContext
from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ErrorType,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
    TokenStorageError,
    UiPathError,
    ValidationError,
)
from .ports import MemoryLocation, MemoryStorage, SystemClock
from .sdk import UiPath
from .telemetry import TelemetryClient

__version__ = "0.1.0"

__all__ = [
    # SDK
    "UiPath",
    # Configuration
    "BaseConfig",
    "Config",
    "SecretConfig",
    "OAuthConfig",
    "SDKSettings",
    "create_config",
    "load_config",
    # Authentication
    "AuthService",
    "TokenManager",
    "TokenInfo",
    "TokenKind",
    "FlowContext",
    # Storage and ports
    "MemoryStorage",
    "FileStorage",
    "MemoryLocation",
    "SystemClock",
    # Request pipeline
    "ApiClient",
    "RequestOptions",
    "NO_CONTENT",
    "ExecutionContext",
    "TelemetryClient",
    # Exceptions
    "UiPathError",
    "ErrorType",
    "AuthenticationError",
    "AuthorizationError",
    "ValidationError",
    "NotFoundError",
    "RateLimitError",
    "ServerError",
    "NetworkError",
    "ConfigurationError",
    "TokenStorageError",
]
