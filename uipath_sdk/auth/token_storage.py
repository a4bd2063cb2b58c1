"""
Token data model and persistence for the UiPath SDK.

This module provides:
- TokenInfo: the immutable bearer token record (secret or OAuth)
- FlowContext: state persisted between initiating and completing an
  authorization code flow
- TokenResponse: validated identity endpoint response
- FileStorage: JSON file implementation of the Storage port for
  long-running hosts and CLI scripts

Persisted token JSON uses the same camelCase shape as the JavaScript SDK
so sessions can be shared between the two.
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..exceptions import TokenStorageError

logger = logging.getLogger(__name__)


class TokenKind(str, Enum):
    """How a token was obtained."""

    SECRET = "secret"
    OAUTH = "oauth"


@dataclass(frozen=True)
class TokenInfo:
    """
    Bearer token record.

    Secret tokens are pre-issued and never expire; they carry no expiry or
    refresh token. OAuth tokens always need ``expires_at`` to be usable.

    Attributes:
        token: Bearer access token
        kind: TokenKind.SECRET or TokenKind.OAUTH
        expires_at: Expiry (timezone-aware UTC), OAuth only
        refresh_token: Refresh token, OAuth only
    """

    token: str
    kind: TokenKind
    expires_at: Optional[datetime] = None
    refresh_token: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", TokenKind(self.kind))
        if self.kind is TokenKind.SECRET:
            object.__setattr__(self, "expires_at", None)
            object.__setattr__(self, "refresh_token", None)
        elif self.expires_at is not None and self.expires_at.tzinfo is None:
            object.__setattr__(self, "expires_at", self.expires_at.replace(tzinfo=timezone.utc))

    @classmethod
    def secret(cls, token: str) -> "TokenInfo":
        return cls(token=token, kind=TokenKind.SECRET)

    @classmethod
    def from_token_response(cls, response: "TokenResponse", now: datetime) -> "TokenInfo":
        """
        Build an OAuth token from an identity endpoint response.

        Args:
            response: Validated token response
            now: Time the response was received

        Returns:
            TokenInfo expiring ``expires_in`` seconds after ``now``
        """
        return cls(
            token=response.access_token,
            kind=TokenKind.OAUTH,
            expires_at=now + timedelta(seconds=response.expires_in),
            refresh_token=response.refresh_token,
        )

    @property
    def is_secret(self) -> bool:
        return self.kind is TokenKind.SECRET

    def is_expired(self, now: datetime) -> bool:
        """
        Check if the token is expired at ``now``.

        Secret tokens never expire. An OAuth token without an expiry is
        treated as expired.
        """
        if self.is_secret:
            return False
        if self.expires_at is None:
            return True
        return now >= self.expires_at

    def to_json(self) -> str:
        """Serialize to the persisted JSON shape."""
        data: Dict[str, Any] = {"token": self.token, "type": self.kind.value}
        if self.expires_at is not None:
            data["expiresAt"] = self.expires_at.isoformat()
        if self.refresh_token is not None:
            data["refreshToken"] = self.refresh_token
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str) -> "TokenInfo":
        """
        Parse and validate the persisted JSON shape.

        Args:
            raw: JSON string previously produced by to_json()

        Returns:
            TokenInfo instance

        Raises:
            ValueError: If the JSON is malformed or has the wrong shape
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("token entry must be a JSON object")

        token = data.get("token")
        if not isinstance(token, str) or not token:
            raise ValueError("token must be a non-empty string")

        kind = TokenKind(data.get("type"))

        expires_at = None
        raw_expiry = data.get("expiresAt")
        if raw_expiry is not None:
            if not isinstance(raw_expiry, str):
                raise ValueError("expiresAt must be an ISO-8601 string")
            expires_at = datetime.fromisoformat(raw_expiry.replace("Z", "+00:00"))

        if kind is TokenKind.OAUTH and expires_at is None:
            raise ValueError("OAuth token entry has no expiresAt")

        refresh_token = data.get("refreshToken")
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise ValueError("refreshToken must be a string")

        return cls(token=token, kind=kind, expires_at=expires_at, refresh_token=refresh_token)

    def __repr__(self) -> str:
        return f"TokenInfo(kind={self.kind.value!r}, expires_at={self.expires_at!r})"


class TokenResponse(BaseModel):
    """Identity endpoint token response."""

    access_token: str = Field(min_length=1)
    token_type: str = "Bearer"
    expires_in: int = Field(gt=0)
    scope: str = ""
    refresh_token: Optional[str] = None


@dataclass
class FlowContext:
    """
    Authorization flow state persisted across the redirect.

    Attributes:
        code_verifier: PKCE verifier for the code exchange
        client_id: OAuth client id the flow was started with
        redirect_uri: Redirect URI sent to the authorize endpoint
        base_url: Platform URL
        org_name: Organization name
        tenant_name: Tenant name
        scope: Requested scopes
        state: Anti-CSRF state sent to the authorize endpoint
    """

    code_verifier: str
    client_id: str
    redirect_uri: str
    base_url: str
    org_name: str
    tenant_name: str = ""
    scope: str = ""
    state: Optional[str] = None

    REQUIRED_FIELDS = ("code_verifier", "client_id", "redirect_uri", "base_url", "org_name")

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "FlowContext":
        """
        Create FlowContext from dictionary.

        Raises:
            ValueError: If a required field is missing or empty
        """
        missing = [name for name in cls.REQUIRED_FIELDS if not data.get(name)]
        if missing:
            raise ValueError(f"flow context missing fields: {', '.join(missing)}")
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        return cls(**known)

    @classmethod
    def from_json(cls, raw: str) -> "FlowContext":
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("flow context must be a JSON object")
        return cls.from_dict(data)


class FileStorage:
    """
    File-based implementation of the Storage port (plaintext JSON).

    All keys live in a single JSON object on disk. Writes go to a temporary
    file in the same directory which then replaces the original, so a crash
    never leaves a half-written file. The file is chmod 600.
    """

    def __init__(self, path: str):
        """
        Initialize file storage.

        Args:
            path: Path to the JSON file (``~`` is expanded)
        """
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Create parent directory if needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid storage file at {self.path}, starting empty: {e}")
            return {}
        except OSError as e:
            raise TokenStorageError(f"Could not read storage file: {e}") from e

        if not isinstance(data, dict):
            logger.warning(f"Storage file at {self.path} is not a JSON object, starting empty")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(data, f, indent=2)
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error(f"Failed to write storage file: {e}")
            raise TokenStorageError(f"Failed to write storage file: {e}") from e

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        """
        Store a value.

        Raises:
            TokenStorageError: If the file cannot be written
        """
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)
            logger.debug(f"Stored {key} in {self.path}")

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key not in data:
                return
            del data[key]
            self._write_all(data)
            logger.debug(f"Removed {key} from {self.path}")

    def clear(self) -> bool:
        """
        Delete the storage file.

        Returns:
            True if file was deleted, False if file didn't exist
        """
        with self._lock:
            if not self.path.exists():
                return False
            try:
                self.path.unlink()
            except OSError as e:
                raise TokenStorageError(f"Failed to delete storage file: {e}") from e
            logger.info(f"Storage file deleted: {self.path}")
            return True
