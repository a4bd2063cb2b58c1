"""
Shared constants for the UiPath SDK.

Identity endpoint paths, storage keys, header names and the canonical
error messages used across the auth and API layers.
"""

import re

DEFAULT_BASE_URL = "https://cloud.uipath.com"

# Identity provider endpoints (relative to {base_url}/{org_name}/)
TOKEN_ENDPOINT = "identity_/connect/token"
AUTHORIZE_ENDPOINT = "identity_/connect/authorize"

OFFLINE_ACCESS_SCOPE = "offline_access"

# Storage keys
TOKEN_STORAGE_KEY_PREFIX = "uipath_sdk_user_token-"
OAUTH_CONTEXT_KEY = "uipath_sdk_oauth_context"
CODE_VERIFIER_KEY = "uipath_sdk_code_verifier"

# Authorization codes are opaque, but restricted to URL-safe characters
# with optional base64 padding. Applied with fullmatch.
AUTHORIZATION_CODE_PATTERN = re.compile(r"[A-Za-z0-9\-._~+/]+=*")

# HTTP
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_XML = "application/xml"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"
REQUEST_ID_HEADER = "x-request-id"


class ErrorMessages:
    """Default messages for the error taxonomy."""

    AUTHENTICATION_FAILED = "Authentication failed"
    ACCESS_DENIED = "Access denied"
    VALIDATION_FAILED = "Validation failed"
    RESOURCE_NOT_FOUND = "Resource not found"
    RATE_LIMIT_EXCEEDED = "Rate limit exceeded"
    SERVER_ERROR = "Internal Server error occurred"
    NETWORK_ERROR = "Network error occurred"
    REQUEST_TIMEOUT = "Request timed out"
    REQUEST_ABORTED = "Request was aborted"
    UNKNOWN_ERROR = "An error occurred"
    INVALID_AUTHORIZATION_CODE = "Invalid authorization code format"
    TOKEN_REFRESH_FAILED = "Token refresh failed"
