"""
PKCE (Proof Key for Code Exchange) helpers, RFC 7636.

The verifier never leaves the client until the code exchange; the
authorization request carries only its S256 challenge.
"""

import base64
import hashlib
import secrets
from urllib.parse import urlencode

from ..constants import AUTHORIZE_ENDPOINT, OFFLINE_ACCESS_SCOPE

VERIFIER_BYTES = 32


def _base64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_code_verifier() -> str:
    """
    Generate a cryptographically random code verifier.

    Returns:
        43-character base64url string (32 random bytes, no padding)
    """
    return _base64url(secrets.token_bytes(VERIFIER_BYTES))


def generate_code_challenge(verifier: str) -> str:
    """
    Derive the S256 code challenge for a verifier.

    Args:
        verifier: Code verifier from generate_code_verifier()

    Returns:
        base64url(SHA-256(verifier)) without padding
    """
    return _base64url(hashlib.sha256(verifier.encode("utf-8")).digest())


def generate_state() -> str:
    """Random anti-CSRF value for the authorization request."""
    return secrets.token_urlsafe(16)


def build_authorization_url(
    base_url: str,
    org_name: str,
    client_id: str,
    redirect_uri: str,
    code_challenge: str,
    scope: str,
    state: str,
) -> str:
    """
    Build the identity provider's authorization URL.

    ``offline_access`` is always appended to the requested scope so the
    token response includes a refresh token.

    Args:
        base_url: Platform URL without trailing slash
        org_name: Organization name
        client_id: OAuth client id
        redirect_uri: Registered redirect URI
        code_challenge: S256 challenge for the flow's verifier
        scope: Requested scopes
        state: Anti-CSRF state value

    Returns:
        Fully encoded authorization URL
    """
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "scope": f"{scope} {OFFLINE_ACCESS_SCOPE}",
        "state": state,
    }
    return f"{base_url}/{org_name}/{AUTHORIZE_ENDPOINT}?{urlencode(params)}"
