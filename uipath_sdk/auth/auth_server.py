"""
Local callback server for the OAuth authorization code flow.

Command line hosts have no browser address bar to read the callback from,
so this module starts a small Flask server on the redirect URI's host,
port and path. It records the first callback it receives and then shuts
down.

IMPORTANT: This server is designed for single-user, interactive use. It
runs only for the duration of one authorization flow.
"""

import html
import logging
import ssl
import threading
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlsplit

from flask import Flask, Response, request
from werkzeug.serving import make_server

from ..exceptions import AuthenticationError, ConfigurationError

if TYPE_CHECKING:
    from .coordinator import AuthService

logger = logging.getLogger(__name__)

PAGE_TEMPLATE = """<html>
<head><title>{title}</title></head>
<body style="font-family: Arial, sans-serif; max-width: 600px; margin: 50px auto; padding: 20px;">
    <h1 style="color: {color};">{title}</h1>
    {body}
    <p style="margin-top: 30px; color: #666;">You can close this window and return to the terminal.</p>
</body>
</html>"""


@dataclass
class AuthorizationResult:
    """
    Result of the browser leg of the authorization flow.

    Attributes:
        success: Whether an authorization code was received
        authorization_code: Authorization code from callback (if successful)
        state: State value echoed by the identity provider
        callback_url: Full URL the browser was redirected to
        error: Error code from the identity provider (if failed)
        error_description: Human-readable error description (if failed)
    """

    success: bool
    authorization_code: Optional[str] = None
    state: Optional[str] = None
    callback_url: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


def _render(title: str, body: str, success: bool) -> str:
    return PAGE_TEMPLATE.format(
        title=title, body=body, color="#4caf50" if success else "#d32f2f"
    )


class OAuthCallbackServer:
    """
    Local HTTP(S) server receiving the OAuth redirect.

    The server:
    1. Listens on the redirect URI's host and port
    2. Serves the redirect URI's path
    3. Records code/state (or the provider's error) from the first callback
    4. Signals waiters and shuts down
    """

    def __init__(
        self,
        redirect_uri: str,
        host: Optional[str] = None,
        ssl_cert_path: Optional[str] = None,
        ssl_key_path: Optional[str] = None,
    ):
        """
        Initialize callback server.

        Args:
            redirect_uri: Registered redirect URI (e.g. http://localhost:8765/callback)
            host: Interface to bind (default: the redirect URI's hostname)
            ssl_cert_path: Certificate for https redirect URIs
            ssl_key_path: Private key for https redirect URIs

        Raises:
            ConfigurationError: If the redirect URI cannot be served locally
        """
        parts = urlsplit(redirect_uri)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ConfigurationError(f"Cannot serve redirect URI {redirect_uri!r}")

        self.redirect_uri = redirect_uri
        self.scheme = parts.scheme
        self.host = host or parts.hostname
        self.port = parts.port or (443 if parts.scheme == "https" else 80)
        self.callback_path = parts.path or "/"
        self.ssl_cert_path = ssl_cert_path
        self.ssl_key_path = ssl_key_path

        self.app = Flask(__name__)
        self.app.logger.setLevel(logging.WARNING)
        self.result: Optional[AuthorizationResult] = None
        self._server = None
        self._thread: Optional[threading.Thread] = None
        self._callback_event = threading.Event()

        self.app.add_url_rule(
            self.callback_path, "oauth_callback", self._handle_callback, methods=["GET"]
        )
        self.app.add_url_rule(
            "/oauth/status", "oauth_status", self._handle_status, methods=["GET"]
        )

    def _handle_callback(self) -> Response:
        """Handle the identity provider's redirect."""
        logger.info("Received OAuth callback")
        if self._callback_event.is_set():
            return Response(
                _render("Already Handled", "<p>This authorization was already received.</p>", False),
                status=409,
                content_type="text/html",
            )

        error = request.args.get("error")
        if error:
            error_desc = request.args.get("error_description", "Unknown error")
            logger.error(f"OAuth error: {error} - {error_desc}")
            self._finish(
                AuthorizationResult(
                    success=False,
                    callback_url=request.url,
                    error=error,
                    error_description=error_desc,
                )
            )
            body = (
                f"<p><strong>Error:</strong> {html.escape(error)}</p>"
                f"<p><strong>Description:</strong> {html.escape(error_desc)}</p>"
            )
            return Response(
                _render("Authorization Failed", body, False),
                status=400,
                content_type="text/html",
            )

        code = request.args.get("code")
        if not code:
            logger.error("No authorization code in callback")
            self._finish(
                AuthorizationResult(
                    success=False,
                    callback_url=request.url,
                    error="missing_code",
                    error_description="No authorization code received",
                )
            )
            return Response(
                _render("Authorization Failed", "<p>No authorization code received.</p>", False),
                status=400,
                content_type="text/html",
            )

        logger.info("Authorization code received successfully")
        self._finish(
            AuthorizationResult(
                success=True,
                authorization_code=code,
                state=request.args.get("state"),
                callback_url=request.url,
            )
        )
        return Response(
            _render(
                "Authorization Successful",
                "<p>The UiPath SDK has been authorized.</p>",
                True,
            ),
            status=200,
            content_type="text/html",
        )

    def _handle_status(self) -> Response:
        """Status endpoint for debugging."""
        waiting = not self._callback_event.is_set()
        return Response(
            f'{{"status": "running", "waiting_for_callback": {str(waiting).lower()}}}',
            status=200,
            content_type="application/json",
        )

    def _finish(self, result: AuthorizationResult) -> None:
        self.result = result
        self._callback_event.set()

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        if self.scheme != "https":
            return None
        if not self.ssl_cert_path or not self.ssl_key_path:
            raise ConfigurationError(
                "https redirect URI requires ssl_cert_path and ssl_key_path"
            )
        cert_path = Path(self.ssl_cert_path)
        key_path = Path(self.ssl_key_path)
        if not cert_path.exists():
            raise FileNotFoundError(f"SSL certificate not found at {cert_path}")
        if not key_path.exists():
            raise FileNotFoundError(f"SSL key not found at {key_path}")

        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.load_cert_chain(str(cert_path), str(key_path))
        return context

    def start(self) -> None:
        """
        Start the callback server in a background thread.

        Raises:
            FileNotFoundError: If SSL certificate files are not found
            OSError: If the port cannot be bound
        """
        self._server = make_server(
            self.host, self.port, self.app, threaded=True, ssl_context=self._ssl_context()
        )
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"OAuth callback server listening on {self.host}:{self.port}{self.callback_path}")

    def wait_for_callback(self, timeout: float = 300) -> AuthorizationResult:
        """
        Wait for the OAuth callback.

        Args:
            timeout: Maximum seconds to wait (default: 300 = 5 minutes)

        Returns:
            AuthorizationResult with code or error
        """
        logger.info(f"Waiting for OAuth callback (timeout: {timeout}s)")

        if self._callback_event.wait(timeout=timeout):
            return self.result

        logger.warning(f"Timeout waiting for callback after {timeout}s")
        return AuthorizationResult(
            success=False,
            error="timeout",
            error_description=f"No callback received within {timeout} seconds. "
            f"Please ensure you completed the authorization in your browser.",
        )

    def stop(self) -> None:
        """Stop the callback server."""
        if self._server is not None:
            logger.info("OAuth callback server shutting down")
            self._server.shutdown()
            self._server = None
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None


def run_authorization_flow(
    auth_service: "AuthService",
    open_browser: bool = True,
    timeout: float = 300,
    server: Optional[OAuthCallbackServer] = None,
) -> AuthorizationResult:
    """
    Run the complete interactive authorization flow.

    This function:
    1. Starts the local callback server
    2. Initiates the flow and shows the authorization URL
    3. Opens the browser (or asks the user to)
    4. Waits for the callback
    5. Completes the code exchange through the auth service

    Args:
        auth_service: Auth service configured for OAuth
        open_browser: Whether to automatically open browser (default: True)
        timeout: Seconds to wait for callback (default: 300)
        server: Callback server (built from the redirect URI if not provided)

    Returns:
        AuthorizationResult; success is False if the browser leg or the
        code exchange failed
    """
    redirect_uri = getattr(auth_service.config, "redirect_uri", None)
    if not redirect_uri:
        raise ConfigurationError("Interactive authorization requires an OAuth configuration")

    server = server or OAuthCallbackServer(redirect_uri)

    try:
        server.start()
        auth_url = auth_service.initiate()

        print("\n" + "=" * 70)
        print("UIPATH AUTHORIZATION")
        print("=" * 70)
        print("Please authorize the application by visiting:")
        print(f"\n  {auth_url}\n")

        if open_browser:
            print("Opening browser automatically...")
            try:
                webbrowser.open(auth_url)
            except webbrowser.Error as e:
                logger.warning(f"Could not open browser automatically: {e}")
                print("Please copy the URL above and paste it in your browser.")
        else:
            print("Copy the URL above and paste it in your browser.")

        print("\nWaiting for authorization...")
        print("=" * 70 + "\n")

        result = server.wait_for_callback(timeout)
    finally:
        server.stop()

    if not result.success:
        logger.error(f"Authorization flow failed: {result.error} - {result.error_description}")
        return result

    try:
        auth_service.complete_callback(result.authorization_code, result.state)
    except AuthenticationError as e:
        logger.error(f"Token exchange failed: {e}")
        result.success = False
        result.error = "exchange_failed"
        result.error_description = e.message
        return result

    logger.info("Authorization flow completed successfully")
    return result
