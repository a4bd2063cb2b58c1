"""
OAuth 2.0 / PKCE authentication for the UiPath SDK.

Public API:
    AuthService: High-level authentication interface (secret or OAuth)
    TokenManager: Token lifecycle management with single-flight refresh
    TokenInfo: Immutable bearer token record
    FlowContext: State persisted across the authorization redirect
    FileStorage: File-based implementation of the Storage port
    OAuthCallbackServer: Local redirect receiver for command line hosts
    run_authorization_flow: Interactive browser authorization
"""

from .auth_server import AuthorizationResult, OAuthCallbackServer, run_authorization_flow
from .coordinator import AuthService, FlowState, get_stored_flow_context
from .identity import IdentityClient
from .pkce import (
    build_authorization_url,
    generate_code_challenge,
    generate_code_verifier,
    generate_state,
)
from .token_manager import TokenManager, TokenState
from .token_storage import FileStorage, FlowContext, TokenInfo, TokenKind, TokenResponse

__all__ = [
    # Coordinator
    "AuthService",
    "FlowState",
    "get_stored_flow_context",
    # Token Manager
    "TokenManager",
    "TokenState",
    # Token Storage
    "TokenInfo",
    "TokenKind",
    "TokenResponse",
    "FlowContext",
    "FileStorage",
    # Identity endpoint
    "IdentityClient",
    # PKCE
    "generate_code_verifier",
    "generate_code_challenge",
    "generate_state",
    "build_authorization_url",
    # Authorization Server
    "OAuthCallbackServer",
    "AuthorizationResult",
    "run_authorization_flow",
]
