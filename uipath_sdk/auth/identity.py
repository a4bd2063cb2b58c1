"""
Client for the identity provider's token endpoint.

Both the authorization code exchange and the refresh grant post a form to
``{base_url}/{org_name}/identity_/connect/token``. Any failure (transport,
HTTP status or malformed body) is reported as AuthenticationError.
"""

import logging
from typing import Dict, Optional

import requests
from pydantic import ValidationError as PydanticValidationError

from ..constants import CONTENT_TYPE_FORM, TOKEN_ENDPOINT
from ..exceptions import AuthenticationError
from .token_storage import TokenResponse

logger = logging.getLogger(__name__)


class IdentityClient:
    """Posts grants to the token endpoint and validates the response."""

    def __init__(
        self,
        base_url: str,
        org_name: str,
        client_id: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = 30,
    ):
        """
        Initialize identity client.

        Args:
            base_url: Platform URL without trailing slash
            org_name: Organization name
            client_id: OAuth client id
            session: HTTP session (creates one if not provided)
            timeout: Request timeout in seconds
        """
        self.token_url = f"{base_url}/{org_name}/{TOKEN_ENDPOINT}"
        self.client_id = client_id
        self.session = session or requests.Session()
        self.timeout = timeout

    def exchange_code(self, code: str, code_verifier: str, redirect_uri: str) -> TokenResponse:
        """
        Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the callback
            code_verifier: PKCE verifier the flow was started with
            redirect_uri: Redirect URI the flow was started with

        Returns:
            Validated TokenResponse

        Raises:
            AuthenticationError: If the exchange fails
        """
        logger.info("Exchanging authorization code for tokens")
        return self._post_grant(
            {
                "grant_type": "authorization_code",
                "client_id": self.client_id,
                "code": code,
                "redirect_uri": redirect_uri,
                "code_verifier": code_verifier,
            },
            "Token exchange",
        )

    def refresh(self, refresh_token: str) -> TokenResponse:
        """
        Obtain a new access token with a refresh token.

        Raises:
            AuthenticationError: If the refresh fails
        """
        logger.info("Refreshing access token")
        return self._post_grant(
            {
                "grant_type": "refresh_token",
                "client_id": self.client_id,
                "refresh_token": refresh_token,
            },
            "Token refresh",
        )

    def _post_grant(self, data: Dict[str, str], operation: str) -> TokenResponse:
        try:
            response = self.session.post(
                self.token_url,
                headers={"Content-Type": CONTENT_TYPE_FORM},
                data=data,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Network error during {operation.lower()}: {e}")
            raise AuthenticationError(f"{operation} failed: network error: {e}") from e

        if response.status_code != 200:
            logger.error(f"{operation} failed: {response.status_code} - {response.text}")
            raise AuthenticationError(
                f"{operation} failed with status {response.status_code}: {response.text}"
            )

        try:
            return TokenResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            logger.error(f"Invalid response from token endpoint: {e}")
            raise AuthenticationError(f"Invalid response from token endpoint: {e}") from e
