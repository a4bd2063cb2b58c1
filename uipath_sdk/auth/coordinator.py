"""
OAuth flow orchestration for the UiPath SDK.

This module provides AuthService, the high-level interface for
authentication. It drives the authorization code flow with PKCE:

1. initiate() persists a FlowContext and PKCE verifier, then hands the
   authorization URL to the host (browser, redirect or CLI prompt)
2. The identity provider redirects back with ``?code=...&state=...``
3. complete_callback() validates the code and state, exchanges it for
   tokens exactly once and discards the flow state

Secret mode skips all of this and installs a non-expiring token.
"""

import logging
import secrets
import threading
from enum import Enum
from typing import Callable, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from ..config import Config, OAuthConfig, SecretConfig
from ..constants import (
    AUTHORIZATION_CODE_PATTERN,
    CODE_VERIFIER_KEY,
    OAUTH_CONTEXT_KEY,
    ErrorMessages,
)
from ..exceptions import AuthenticationError, ConfigurationError, TokenStorageError
from ..ports import Clock, Location, MemoryLocation, MemoryStorage, Storage
from . import pkce
from .identity import IdentityClient
from .token_manager import TokenManager
from .token_storage import FlowContext, TokenInfo

logger = logging.getLogger(__name__)

CALLBACK_PARAMS = ("code", "state")


class FlowState(str, Enum):
    """Authorization code flow progress."""

    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    COMPLETE = "complete"
    FAILED = "failed"


def get_stored_flow_context(storage: Storage) -> Optional[FlowContext]:
    """
    Read the persisted flow context.

    An entry that cannot be parsed or lacks required fields is removed.

    Args:
        storage: Storage port

    Returns:
        FlowContext if a valid one is stored, None otherwise
    """
    raw = storage.get(OAUTH_CONTEXT_KEY)
    if raw is None:
        return None
    try:
        return FlowContext.from_json(raw)
    except ValueError as e:
        logger.warning(f"Discarding invalid OAuth flow context: {e}")
        storage.remove(OAUTH_CONTEXT_KEY)
        return None


def read_callback_params(url: str) -> Tuple[Optional[str], Optional[str]]:
    """Extract ``code`` and ``state`` from a callback URL's query string."""
    params = dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))
    return params.get("code"), params.get("state")


def strip_callback_params(url: str) -> str:
    """Remove ``code`` and ``state`` from a URL, keeping other parameters."""
    parts = urlsplit(url)
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in CALLBACK_PARAMS
    ]
    return urlunsplit(parts._replace(query=urlencode(query)))


class AuthService:
    """
    High-level coordinator for authentication.

    Example:
        auth = AuthService(config, storage=FileStorage("~/.uipath/session.json"))
        if not auth.authenticate():
            # Flow initiated: user must visit the authorization URL, after
            # which the host calls auth.complete_callback(code, state)
            ...
        token = auth.get_token()
    """

    def __init__(
        self,
        config: Config,
        storage: Optional[Storage] = None,
        clock: Optional[Clock] = None,
        session: Optional[requests.Session] = None,
        location: Optional[Location] = None,
        open_url: Optional[Callable[[str], None]] = None,
        token_manager: Optional[TokenManager] = None,
    ):
        """
        Initialize auth service.

        When an authorization flow is in progress (a flow context is
        stored), its coordinates replace those of an OAuth ``config`` so the
        callback completes against the client the flow was started with.

        Args:
            config: SDK configuration
            storage: Storage port shared with the token manager
            clock: Clock port
            session: HTTP session for the token endpoint
            location: Current URL holder for redirect hosts
            open_url: Called with the authorization URL on initiate()
            token_manager: Token manager (built from config if not provided)
        """
        self.storage = storage if storage is not None else MemoryStorage()
        self.location = location or MemoryLocation()
        self.open_url = open_url
        self.session = session or requests.Session()

        stored = get_stored_flow_context(self.storage)
        if isinstance(config, OAuthConfig) and stored is not None:
            logger.debug("Merging stored OAuth flow context into configuration")
            config = config.merge_flow_context(stored)
        self.config = config

        self.token_manager = token_manager or TokenManager(
            self.config, storage=self.storage, clock=clock, session=self.session
        )
        self.flow_state = FlowState.AWAITING_CALLBACK if stored else FlowState.IDLE
        self._callback_lock = threading.Lock()

    def authenticate(self, config: Optional[Config] = None) -> bool:
        """
        Authenticate with whichever mode the configuration selects.

        OAuth mode, in order: complete a pending callback, restore a stored
        token, or initiate a new authorization flow.

        Args:
            config: Configuration to authenticate with (default: service config)

        Returns:
            True if a valid token is now available, False if an
            authorization flow was initiated and awaits its callback

        Raises:
            AuthenticationError: If a callback cannot be completed
        """
        config = config or self.config

        if isinstance(config, SecretConfig):
            return self.authenticate_with_secret(config.secret)

        if not isinstance(config, OAuthConfig):
            raise ConfigurationError(f"Unsupported configuration type: {type(config).__name__}")

        if self.is_in_oauth_callback():
            return self.complete_callback()

        if self.token_manager.load_from_storage():
            logger.info("Already authorized")
            return True

        logger.info("No valid token found, starting authorization flow")
        self.initiate(config.client_id, config.redirect_uri, config.scope)
        return False

    def authenticate_with_secret(self, secret: str) -> bool:
        """
        Install a pre-issued token. Secret tokens never expire.

        Args:
            secret: Personal access token or client secret token

        Returns:
            True
        """
        if not secret:
            raise AuthenticationError("Secret cannot be empty")
        self.token_manager.set_token(TokenInfo.secret(secret))
        logger.info("Authenticated with secret")
        return True

    def initiate(
        self,
        client_id: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> str:
        """
        Start an authorization code flow.

        Args:
            client_id: OAuth client id (default: from config)
            redirect_uri: Redirect URI (default: from config)
            scope: Requested scopes (default: from config)

        Returns:
            Authorization URL the user must visit

        Raises:
            ConfigurationError: If OAuth parameters are missing
        """
        client_id = client_id or getattr(self.config, "client_id", None)
        redirect_uri = redirect_uri or getattr(self.config, "redirect_uri", None)
        scope = scope or getattr(self.config, "scope", None)
        if not (client_id and redirect_uri and scope):
            raise ConfigurationError("client_id, redirect_uri and scope are required for OAuth")

        verifier = pkce.generate_code_verifier()
        state = pkce.generate_state()
        context = FlowContext(
            code_verifier=verifier,
            client_id=client_id,
            redirect_uri=redirect_uri,
            base_url=self.config.base_url,
            org_name=self.config.org_name,
            tenant_name=self.config.tenant_name,
            scope=scope,
            state=state,
        )
        self.storage.set(OAUTH_CONTEXT_KEY, context.to_json())
        self.storage.set(CODE_VERIFIER_KEY, verifier)

        url = pkce.build_authorization_url(
            base_url=self.config.base_url,
            org_name=self.config.org_name,
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_challenge=pkce.generate_code_challenge(verifier),
            scope=scope,
            state=state,
        )
        self.flow_state = FlowState.AWAITING_CALLBACK
        logger.info("Authorization flow initiated")

        if self.open_url is not None:
            self.open_url(url)
        return url

    def is_in_oauth_callback(self) -> bool:
        """
        Check whether the current location is an authorization callback.

        Returns:
            True if the URL carries a ``code`` and a verifier is stored
        """
        code, _ = read_callback_params(self.location.href)
        return bool(code) and self.storage.get(CODE_VERIFIER_KEY) is not None

    def complete_callback(self, code: Optional[str] = None, state: Optional[str] = None) -> bool:
        """
        Finish the authorization code flow.

        Concurrent calls are serialized; once a valid token exists further
        calls return True without another exchange. The flow context and
        verifier are discarded whether the exchange succeeds or fails.

        Args:
            code: Authorization code (default: read from the location URL)
            state: State returned by the identity provider (default: read
                from the location URL); required when the flow issued one

        Returns:
            True once a valid token is stored

        Raises:
            AuthenticationError: If the code or state is invalid, no flow is
                in progress, or the exchange fails
        """
        url_code, url_state = read_callback_params(self.location.href)
        if code is None:
            code = url_code
        if state is None:
            state = url_state

        with self._callback_lock:
            if self.token_manager.has_valid_token():
                logger.debug("Valid token already present, skipping code exchange")
                return True

            verifier = self.storage.get(CODE_VERIFIER_KEY)
            if not verifier:
                self.flow_state = FlowState.FAILED
                raise AuthenticationError(
                    "No code verifier found. Start the authorization flow first."
                )

            context = get_stored_flow_context(self.storage)
            try:
                self._validate_callback(code, state, context)
                self.flow_state = FlowState.EXCHANGING
                self._exchange(code, verifier, context)
            except Exception:
                self.flow_state = FlowState.FAILED
                raise
            finally:
                self._discard_flow()

            self.flow_state = FlowState.COMPLETE

        self._clean_location()
        logger.info("Authorization complete")
        return True

    def _validate_callback(
        self, code: Optional[str], state: Optional[str], context: Optional[FlowContext]
    ) -> None:
        if not code:
            raise AuthenticationError("Authorization code missing from callback")

        if not AUTHORIZATION_CODE_PATTERN.fullmatch(code):
            logger.error("Rejected authorization code with invalid characters")
            raise AuthenticationError(ErrorMessages.INVALID_AUTHORIZATION_CODE)

        expected = context.state if context else None
        if expected is None:
            return
        if not state:
            logger.error("OAuth state missing from callback")
            raise AuthenticationError("OAuth state missing from callback. Possible CSRF attempt.")
        if not secrets.compare_digest(state.encode(), expected.encode()):
            logger.error("OAuth state mismatch on callback")
            raise AuthenticationError("OAuth state mismatch. Possible CSRF attempt.")

    def _exchange(self, code: str, verifier: str, context: Optional[FlowContext]) -> None:
        if context is not None:
            base_url, org_name = context.base_url, context.org_name
            client_id, redirect_uri = context.client_id, context.redirect_uri
        elif isinstance(self.config, OAuthConfig):
            base_url, org_name = self.config.base_url, self.config.org_name
            client_id, redirect_uri = self.config.client_id, self.config.redirect_uri
        else:
            raise AuthenticationError("No OAuth flow in progress")

        identity = IdentityClient(base_url, org_name, client_id, session=self.session)
        received_at = self.token_manager.clock.now()
        response = identity.exchange_code(code, verifier, redirect_uri)
        self.token_manager.set_token(TokenInfo.from_token_response(response, received_at))

    def _discard_flow(self) -> None:
        for key in (OAUTH_CONTEXT_KEY, CODE_VERIFIER_KEY):
            try:
                self.storage.remove(key)
            except TokenStorageError as e:
                logger.warning(f"Could not remove {key}: {e}")

    def _clean_location(self) -> None:
        href = self.location.href
        if not href:
            return
        cleaned = strip_callback_params(href)
        if cleaned != href:
            self.location.replace(cleaned)

    def has_valid_token(self) -> bool:
        return self.token_manager.has_valid_token()

    def get_token(self) -> Optional[str]:
        """Current access token, or None if there is no valid token."""
        if not self.token_manager.has_valid_token():
            return None
        return self.token_manager.get_token()

    def update_token(self, info: TokenInfo) -> None:
        """Replace the current token (e.g. one obtained out of band)."""
        self.token_manager.set_token(info)

    def logout(self) -> None:
        """Forget the token and any in-progress authorization flow."""
        self.token_manager.clear_token()
        self._discard_flow()
        self.flow_state = FlowState.IDLE
        logger.info("Logged out. Re-authorization required.")

    def get_status(self) -> dict:
        """
        Get authentication status information.

        Returns:
            Token status plus the authorization flow state
        """
        status = self.token_manager.get_token_status()
        status["flow_state"] = self.flow_state.value
        return status
