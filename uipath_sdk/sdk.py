"""
UiPath SDK entry point.

UiPath wires the configuration, authentication, request pipeline and
telemetry for one SDK instance. Nothing is shared between instances.

Example (secret mode):
    sdk = UiPath(create_config("acme", "DefaultTenant", secret="pat_..."))
    folders = sdk.api.get("orchestrator_/odata/Folders")

Example (OAuth, command line host):
    sdk = UiPath(config, storage=FileStorage("~/.uipath/session.json"))
    if not sdk.initialize():
        sdk.authorize_interactively()
"""

import logging
from typing import Callable, Dict, Optional

import requests

from .api.client import ApiClient
from .auth.auth_server import run_authorization_flow
from .auth.coordinator import AuthService
from .auth.token_storage import TokenInfo
from .config import Config, SDKSettings, load_config
from .context import ExecutionContext
from .ports import Clock, Location, Storage
from .telemetry import SDK_AUTH_EVENT, TelemetryClient, track

logger = logging.getLogger(__name__)


class UiPath:
    """
    High-level SDK facade.

    Secret mode is authenticated as soon as the instance is built. OAuth
    mode requires initialize() (and, on first use, completing the
    authorization flow).
    """

    def __init__(
        self,
        config: Config,
        storage: Optional[Storage] = None,
        clock: Optional[Clock] = None,
        session: Optional[requests.Session] = None,
        location: Optional[Location] = None,
        open_url: Optional[Callable[[str], None]] = None,
        telemetry: Optional[TelemetryClient] = None,
        default_headers: Optional[Dict[str, str]] = None,
        max_retries: int = 0,
    ):
        """
        Initialize the SDK.

        Args:
            config: SecretConfig or OAuthConfig
            storage: Storage port for tokens and flow state (in-memory default)
            clock: Clock port (system UTC clock default)
            session: HTTP session shared by the identity and API clients
            location: Current URL holder for redirect hosts
            open_url: Called with the authorization URL when a flow starts
            telemetry: Telemetry client (events logged only by default)
            default_headers: Headers added to every API request
            max_retries: Retries for retryable API errors
        """
        self.telemetry = telemetry or TelemetryClient()
        self.session = session or requests.Session()
        self.execution_context = ExecutionContext()

        self.auth = AuthService(
            config,
            storage=storage,
            clock=clock,
            session=self.session,
            location=location,
            open_url=open_url,
        )
        # Reflects a stored flow context, if one was merged in
        self.config = self.auth.config
        self.token_manager = self.auth.token_manager
        self.api = ApiClient(
            self.config,
            self.token_manager,
            execution_context=self.execution_context,
            session=self.session,
            default_headers=default_headers,
            max_retries=max_retries,
        )

        self._initialized = False
        self.telemetry.track_event(
            SDK_AUTH_EVENT, {"mode": "oauth" if self.config.is_oauth else "secret"}
        )

        self.initialize = track(self.telemetry, "UiPath.initialize", self.initialize)
        self.complete_oauth = track(self.telemetry, "UiPath.complete_oauth", self.complete_oauth)

        if not self.config.is_oauth:
            self._initialized = self.auth.authenticate_with_secret(self.config.secret)

    @classmethod
    def from_env(cls, settings: Optional[SDKSettings] = None, **kwargs) -> "UiPath":
        """
        Build the SDK from UIPATH_* environment variables.

        Args:
            settings: Pre-built settings (reads the environment when omitted)
            **kwargs: Passed to the constructor

        Raises:
            ConfigurationError: If required environment variables are missing
        """
        return cls(load_config(settings), **kwargs)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> bool:
        """
        Authenticate according to the configuration.

        Returns:
            True once a valid token is available; False if an authorization
            flow was initiated and the caller must complete it

        Raises:
            AuthenticationError: If a pending callback cannot be completed
        """
        if self._initialized and self.auth.has_valid_token():
            return True

        self._initialized = self.auth.authenticate()
        return self._initialized

    def is_in_oauth_callback(self) -> bool:
        return self.auth.is_in_oauth_callback()

    def complete_oauth(self, code: Optional[str] = None, state: Optional[str] = None) -> bool:
        """
        Complete a pending authorization flow.

        Args:
            code: Authorization code (default: read from the location URL)
            state: State echoed by the identity provider

        Returns:
            True once a valid token is stored

        Raises:
            AuthenticationError: If the callback cannot be completed
        """
        self._initialized = self.auth.complete_callback(code, state)
        return self._initialized

    def authorize_interactively(self, open_browser: bool = True, timeout: float = 300) -> bool:
        """
        Run the browser authorization flow with a local callback server.

        Returns:
            True if authorization succeeded, False otherwise
        """
        result = run_authorization_flow(self.auth, open_browser=open_browser, timeout=timeout)
        self._initialized = result.success
        return result.success

    def is_authenticated(self) -> bool:
        return self.auth.has_valid_token()

    def get_token(self) -> Optional[str]:
        return self.auth.get_token()

    def update_token(self, info: TokenInfo) -> None:
        self.auth.update_token(info)

    def logout(self) -> None:
        self.auth.logout()
        self._initialized = False

    def dispose(self) -> None:
        """Release the HTTP session. The instance must not be used afterwards."""
        self.session.close()
        logger.debug("UiPath SDK disposed")

    def __enter__(self) -> "UiPath":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()
