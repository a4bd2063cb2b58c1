"""
Token lifecycle manager for the UiPath SDK.

This module manages the bearer token lifecycle including:
- Restoring a persisted OAuth token on startup
- Handing a currently-valid token to any number of concurrent callers
- Refreshing expired OAuth tokens with at most one refresh in flight
- Clearing token state when a refresh fails (fail-closed)

The TokenManager is the only component that mutates the token slot or its
persisted copy.
"""

import logging
import threading
from concurrent.futures import Future
from enum import Enum
from typing import Any, Dict, Optional

import requests

from ..config import Config
from ..constants import TOKEN_STORAGE_KEY_PREFIX
from ..exceptions import AuthenticationError, TokenStorageError
from ..ports import Clock, MemoryStorage, Storage, SystemClock
from .identity import IdentityClient
from .token_storage import TokenInfo

logger = logging.getLogger(__name__)


class TokenState(str, Enum):
    """Observable token lifecycle state."""

    EMPTY = "empty"
    LOADING = "loading"
    VALID = "valid"
    EXPIRED = "expired"
    REFRESHING = "refreshing"


class TokenManager:
    """
    Manages the bearer token lifecycle.

    Responsibilities:
    - Provide valid access tokens to API clients
    - Single-flight refresh of expired OAuth tokens
    - Persist OAuth tokens through the Storage port
    - Track token status
    """

    def __init__(
        self,
        config: Config,
        storage: Optional[Storage] = None,
        clock: Optional[Clock] = None,
        session: Optional[requests.Session] = None,
        identity: Optional[IdentityClient] = None,
    ):
        """
        Initialize token manager.

        Args:
            config: SDK configuration (secret or OAuth mode)
            storage: Storage port (in-memory if not provided)
            clock: Clock port (system UTC clock if not provided)
            session: HTTP session for the token endpoint
            identity: Token endpoint client (built from config if not provided)
        """
        self.config = config
        self.storage = storage if storage is not None else MemoryStorage()
        self.clock = clock or SystemClock()
        self.is_oauth = config.is_oauth

        self._identity = identity
        if self._identity is None and self.is_oauth:
            self._identity = IdentityClient(
                config.base_url, config.org_name, config.client_id, session=session
            )

        self._lock = threading.Lock()
        self._token: Optional[TokenInfo] = None
        self._refresh_future: Optional["Future[TokenInfo]"] = None
        self._loading = False

    @property
    def storage_key(self) -> str:
        client_id = getattr(self.config, "client_id", "")
        return f"{TOKEN_STORAGE_KEY_PREFIX}{client_id}"

    @property
    def state(self) -> TokenState:
        with self._lock:
            if self._refresh_future is not None:
                return TokenState.REFRESHING
            if self._loading:
                return TokenState.LOADING
            token = self._token
        if token is None:
            return TokenState.EMPTY
        if token.is_expired(self.clock.now()):
            return TokenState.EXPIRED
        return TokenState.VALID

    def is_token_expired(self, info: Optional[TokenInfo] = None) -> bool:
        """
        Check if a token is expired.

        Args:
            info: Token to check (current token if omitted)

        Returns:
            True if there is no token or it has expired
        """
        if info is None:
            info = self.get_token_info()
        if info is None:
            return True
        return info.is_expired(self.clock.now())

    def load_from_storage(self) -> bool:
        """
        Restore a persisted OAuth token.

        Malformed, incomplete or already expired entries are removed from
        storage and ignored.

        Returns:
            True if a valid token was loaded, False otherwise
        """
        if not self.is_oauth:
            return False

        with self._lock:
            self._loading = True
        try:
            try:
                raw = self.storage.get(self.storage_key)
            except TokenStorageError as e:
                logger.warning(f"Could not read stored token: {e}")
                return False

            if raw is None:
                logger.debug("No stored token found")
                return False

            try:
                info = TokenInfo.from_json(raw)
            except ValueError as e:
                logger.warning(f"Discarding invalid stored token: {e}")
                self._remove_persisted()
                return False

            if info.is_secret or info.is_expired(self.clock.now()):
                logger.info("Discarding expired stored token")
                self._remove_persisted()
                return False

            with self._lock:
                self._token = info
            logger.info("Restored token from storage")
            return True
        finally:
            with self._lock:
                self._loading = False

    def set_token(self, info: TokenInfo) -> None:
        """
        Replace the current token.

        OAuth tokens are persisted; secret tokens stay in memory only.
        A storage failure is logged and the in-memory token still updates.

        Args:
            info: New token
        """
        with self._lock:
            self._token = info

        if not self.is_oauth:
            return
        if info.is_secret:
            # Drop any stored OAuth token it replaces
            self._remove_persisted()
            return

        try:
            self.storage.set(self.storage_key, info.to_json())
            logger.info("Token saved to storage")
        except TokenStorageError as e:
            logger.warning(f"Could not persist token: {e}")

    def clear_token(self) -> None:
        """Remove the in-memory and persisted token. Safe to call repeatedly."""
        with self._lock:
            had_token = self._token is not None
            self._token = None
        self._remove_persisted()
        if had_token:
            logger.info("Token cleared")

    def get_token_info(self) -> Optional[TokenInfo]:
        with self._lock:
            return self._token

    def get_token(self) -> Optional[str]:
        """Current access token string, valid or not."""
        info = self.get_token_info()
        return info.token if info else None

    def has_valid_token(self) -> bool:
        info = self.get_token_info()
        return info is not None and not info.is_expired(self.clock.now())

    def get_valid_token(self) -> str:
        """
        Get a valid access token, refreshing it first if expired.

        Concurrent callers that find the token expired share one refresh.

        Returns:
            Valid bearer token

        Raises:
            AuthenticationError: If no token is available or the refresh fails
        """
        info = self.get_token_info()
        if info is None:
            raise AuthenticationError(
                "No authentication token available. Call authenticate() first."
            )

        if not info.is_expired(self.clock.now()):
            return info.token

        return self.refresh_access_token(force=False).token

    def refresh_access_token(self, force: bool = True) -> TokenInfo:
        """
        Refresh the OAuth access token.

        Only one refresh runs at a time. Callers arriving while a refresh is
        in flight wait for it and receive its result, or its error. On
        failure the token is cleared from memory and storage.

        Args:
            force: Refresh even if another caller already replaced the
                expired token with a valid one

        Returns:
            Refreshed TokenInfo

        Raises:
            AuthenticationError: If there is nothing to refresh or the refresh fails
        """
        with self._lock:
            future = self._refresh_future
            current = self._token
            owner = future is None
            if owner:
                if not force and current is not None and not current.is_expired(self.clock.now()):
                    return current
                if not self.is_oauth or (current is not None and current.is_secret):
                    raise AuthenticationError("Secret tokens cannot be refreshed")
                if current is None or not current.refresh_token:
                    raise AuthenticationError(
                        "No refresh token available. Run authorization flow first."
                    )
                future = Future()
                self._refresh_future = future

        if not owner:
            logger.debug("Waiting for in-flight token refresh")
            return future.result()

        try:
            info = self._perform_refresh(current)
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(info)
            return info
        finally:
            with self._lock:
                self._refresh_future = None

    def _perform_refresh(self, current: TokenInfo) -> TokenInfo:
        started_at = self.clock.now()
        try:
            response = self._identity.refresh(current.refresh_token)
        except Exception as e:
            self.clear_token()
            reason = e.message if isinstance(e, AuthenticationError) else str(e)
            logger.error(f"Token refresh failed, cleared token: {reason}")
            raise AuthenticationError(
                f"Token refresh failed: {reason}. Please re-authenticate.", 401
            ) from e

        info = TokenInfo.from_token_response(response, started_at)
        if info.refresh_token is None:
            # Refresh token was not rotated
            info = TokenInfo(
                token=info.token,
                kind=info.kind,
                expires_at=info.expires_at,
                refresh_token=current.refresh_token,
            )
        self.set_token(info)
        logger.info(f"Token refreshed, expires at {info.expires_at.isoformat()}")
        return info

    def get_token_status(self) -> Dict[str, Any]:
        """
        Get current token status information.

        Returns:
            Dictionary with token status details
        """
        info = self.get_token_info()
        if info is None:
            return {"authorized": False, "message": "No token available"}

        now = self.clock.now()
        status: Dict[str, Any] = {
            "authorized": True,
            "kind": info.kind.value,
            "state": self.state.value,
            "expired": info.is_expired(now),
            "has_refresh_token": info.refresh_token is not None,
        }
        if info.expires_at is not None:
            status["expires_at"] = info.expires_at.isoformat()
            status["expires_in_seconds"] = max(0, int((info.expires_at - now).total_seconds()))
        return status

    def _remove_persisted(self) -> None:
        if not self.is_oauth:
            return
        try:
            self.storage.remove(self.storage_key)
        except TokenStorageError as e:
            logger.warning(f"Could not remove stored token: {e}")
