"""Tests for the OAuth flow orchestrator."""

import threading
from datetime import timedelta
from unittest import mock
from urllib.parse import parse_qs, urlsplit

import pytest

from uipath_sdk.auth.coordinator import (
    AuthService,
    FlowState,
    get_stored_flow_context,
    strip_callback_params,
)
from uipath_sdk.auth.pkce import generate_code_challenge
from uipath_sdk.auth.token_storage import FlowContext, TokenInfo, TokenKind
from uipath_sdk.exceptions import AuthenticationError
from uipath_sdk.ports import MemoryLocation

CONTEXT_KEY = "uipath_sdk_oauth_context"
VERIFIER_KEY = "uipath_sdk_code_verifier"
TOKEN_KEY = "uipath_sdk_user_token-client-123"
CALLBACK = "http://localhost:8765/callback"


class TestAuthService:
    """Tests for AuthService class."""

    @pytest.fixture
    def location(self):
        return MemoryLocation(CALLBACK)

    @pytest.fixture
    def open_url(self):
        return mock.Mock()

    @pytest.fixture
    def service(self, oauth_config, storage, clock, session, location, open_url):
        """Create auth service with mocked session."""
        return AuthService(
            oauth_config,
            storage=storage,
            clock=clock,
            session=session,
            location=location,
            open_url=open_url,
        )

    def initiate_and_land(self, service, location, code="abc123"):
        """Start a flow and simulate the identity provider redirect."""
        url = service.initiate()
        state = parse_qs(urlsplit(url).query)["state"][0]
        location.replace(f"{CALLBACK}?code={code}&state={state}")
        return state

    def test_initiate_persists_flow_state(self, service, storage):
        """initiate stores the flow context and the verifier."""
        url = service.initiate()

        context = FlowContext.from_json(storage.get(CONTEXT_KEY))
        assert storage.get(VERIFIER_KEY) == context.code_verifier
        assert context.client_id == "client-123"
        assert context.redirect_uri == CALLBACK
        assert context.org_name == "acme"
        assert context.tenant_name == "DefaultTenant"

        params = parse_qs(urlsplit(url).query)
        assert params["code_challenge"] == [generate_code_challenge(context.code_verifier)]
        assert params["state"] == [context.state]
        assert service.flow_state is FlowState.AWAITING_CALLBACK

    def test_initiate_opens_url(self, service, open_url):
        """The authorization URL is handed to open_url."""
        url = service.initiate()

        open_url.assert_called_once_with(url)

    def test_is_in_oauth_callback(self, service, location, storage):
        """Callback detection needs a code in the URL and a stored verifier."""
        assert service.is_in_oauth_callback() is False

        location.replace(f"{CALLBACK}?code=abc")
        assert service.is_in_oauth_callback() is False

        storage.set(VERIFIER_KEY, "verifier")
        assert service.is_in_oauth_callback() is True

    def test_complete_callback_exchanges_code(
        self, service, session, storage, location, make_response, token_payload
    ):
        """A valid callback exchanges the code and stores the token."""
        self.initiate_and_land(service, location)
        verifier = storage.get(VERIFIER_KEY)
        session.post.return_value = make_response(200, token_payload())

        assert service.complete_callback() is True

        _, kwargs = session.post.call_args
        assert kwargs["data"]["code"] == "abc123"
        assert kwargs["data"]["code_verifier"] == verifier
        assert kwargs["data"]["redirect_uri"] == CALLBACK
        assert service.get_token() == "new_access_token"
        assert storage.get(TOKEN_KEY) is not None
        assert service.flow_state is FlowState.COMPLETE

    def test_complete_callback_discards_flow_state(
        self, service, session, storage, location, make_response, token_payload
    ):
        """Flow context and verifier are deleted after success."""
        self.initiate_and_land(service, location)
        session.post.return_value = make_response(200, token_payload())

        service.complete_callback()

        assert storage.get(CONTEXT_KEY) is None
        assert storage.get(VERIFIER_KEY) is None

    def test_complete_callback_strips_location(
        self, service, session, location, make_response, token_payload
    ):
        """code and state are removed from the current URL."""
        self.initiate_and_land(service, location)
        session.post.return_value = make_response(200, token_payload())

        service.complete_callback()

        assert location.href == CALLBACK

    def test_complete_callback_is_idempotent(
        self, service, session, location, make_response, token_payload
    ):
        """Repeated completion performs exactly one exchange."""
        self.initiate_and_land(service, location)
        session.post.return_value = make_response(200, token_payload())

        assert service.complete_callback("abc123") is True
        assert service.complete_callback("abc123") is True

        assert session.post.call_count == 1

    def test_concurrent_completion_exchanges_once(
        self, service, session, location, make_response, token_payload
    ):
        """Concurrent completions are serialized into one exchange."""
        self.initiate_and_land(service, location)
        session.post.return_value = make_response(200, token_payload())
        results = []

        def call():
            results.append(service.complete_callback("abc123"))

        threads = [threading.Thread(target=call) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5)

        assert results == [True, True]
        assert session.post.call_count == 1

    def test_invalid_code_rejected_without_network(self, service, session, storage, location):
        """Codes with disallowed characters never reach the token endpoint."""
        service.initiate()

        with pytest.raises(AuthenticationError, match="Invalid authorization code format"):
            service.complete_callback("abc$%^")

        session.post.assert_not_called()
        assert storage.get(CONTEXT_KEY) is None
        assert storage.get(VERIFIER_KEY) is None
        assert service.flow_state is FlowState.FAILED

    def test_code_with_allowed_punctuation_accepted(
        self, service, session, make_response, token_payload
    ):
        """URL-safe punctuation and trailing padding are accepted."""
        url = service.initiate()
        state = parse_qs(urlsplit(url).query)["state"][0]
        session.post.return_value = make_response(200, token_payload())

        assert service.complete_callback("abc-._~+/==", state) is True

        session.post.assert_called_once()

    def test_code_with_trailing_newline_rejected(self, service, session):
        """A trailing newline does not slip past the character check."""
        url = service.initiate()
        state = parse_qs(urlsplit(url).query)["state"][0]

        with pytest.raises(AuthenticationError, match="Invalid authorization code format"):
            service.complete_callback("abc\n", state)

        session.post.assert_not_called()

    def test_encoded_newline_in_callback_url_rejected(self, service, session, location):
        """An encoded newline in the redirect URL is rejected by authenticate()."""
        self.initiate_and_land(service, location, code="abc%0A")

        with pytest.raises(AuthenticationError, match="Invalid authorization code format"):
            service.authenticate()

        session.post.assert_not_called()

    def test_missing_state_rejected(self, service, session, storage):
        """A callback without the issued state is rejected."""
        service.initiate()

        with pytest.raises(AuthenticationError, match="state missing"):
            service.complete_callback("abc123", None)

        session.post.assert_not_called()
        assert storage.get(VERIFIER_KEY) is None
        assert storage.get(CONTEXT_KEY) is None
        assert service.flow_state is FlowState.FAILED

    def test_missing_code_rejected(self, service, session):
        """A callback without code fails."""
        service.initiate()

        with pytest.raises(AuthenticationError, match="code missing"):
            service.complete_callback()

        session.post.assert_not_called()

    def test_missing_verifier_rejected(self, service, session):
        """Completing without an initiated flow fails."""
        with pytest.raises(AuthenticationError, match="No code verifier"):
            service.complete_callback("abc123")

        session.post.assert_not_called()

    def test_state_mismatch_rejected(self, service, session, storage, location):
        """A state different from the stored one is rejected."""
        self.initiate_and_land(service, location)

        with pytest.raises(AuthenticationError, match="state mismatch"):
            service.complete_callback("abc123", state="forged_state")

        session.post.assert_not_called()
        assert storage.get(VERIFIER_KEY) is None

    def test_exchange_failure_discards_flow_state(
        self, service, session, storage, location, make_response
    ):
        """Flow state is discarded when the exchange fails."""
        self.initiate_and_land(service, location)
        session.post.return_value = make_response(400, {"error": "invalid_grant"})

        with pytest.raises(AuthenticationError):
            service.complete_callback()

        assert storage.get(CONTEXT_KEY) is None
        assert storage.get(VERIFIER_KEY) is None
        assert service.get_token() is None
        assert service.flow_state is FlowState.FAILED

    def test_authenticate_initiates_flow_without_token(self, service, storage, open_url):
        """Without stored token, authenticate starts the flow."""
        assert service.authenticate() is False

        assert storage.get(VERIFIER_KEY) is not None
        open_url.assert_called_once()

    def test_authenticate_restores_stored_token(self, service, storage, open_url, valid_oauth_token):
        """A valid stored token is reused."""
        storage.set(TOKEN_KEY, valid_oauth_token.to_json())

        assert service.authenticate() is True

        assert service.get_token() == "valid_access_token"
        open_url.assert_not_called()

    def test_authenticate_completes_pending_callback(
        self, service, session, location, make_response, token_payload
    ):
        """Landing on the callback URL completes the flow."""
        self.initiate_and_land(service, location)
        session.post.return_value = make_response(200, token_payload())

        assert service.authenticate() is True

        assert service.get_token() == "new_access_token"

    def test_authenticate_with_secret(self, service):
        """Secret authentication installs a non-expiring token."""
        assert service.authenticate_with_secret("pat_token") is True

        assert service.get_token() == "pat_token"
        assert service.token_manager.get_token_info().kind is TokenKind.SECRET

    def test_authenticate_secret_config(self, secret_config, storage, clock):
        """authenticate() with a secret config uses the secret."""
        service = AuthService(secret_config, storage=storage, clock=clock)

        assert service.authenticate() is True
        assert service.get_token() == "pat_secret_token"

    def test_authenticate_with_empty_secret(self, service):
        with pytest.raises(AuthenticationError):
            service.authenticate_with_secret("")

    def test_get_token_none_when_expired(self, service, expired_oauth_token):
        """get_token only returns valid tokens."""
        service.update_token(expired_oauth_token)

        assert service.get_token() is None
        assert service.has_valid_token() is False

    def test_update_token(self, service, clock):
        """update_token replaces the current token."""
        service.update_token(
            TokenInfo(token="external", kind=TokenKind.OAUTH, expires_at=clock.now() + timedelta(hours=1))
        )

        assert service.get_token() == "external"

    def test_logout_clears_everything(self, service, storage, valid_oauth_token):
        """logout removes token and flow state."""
        service.update_token(valid_oauth_token)
        service.initiate()

        service.logout()

        assert service.get_token() is None
        assert storage.get(TOKEN_KEY) is None
        assert storage.get(VERIFIER_KEY) is None
        assert service.flow_state is FlowState.IDLE

    def test_stored_context_merged_into_config(self, oauth_config, storage, clock):
        """A pending flow's coordinates override the configuration."""
        stored = FlowContext(
            code_verifier="verifier",
            client_id="other-client",
            redirect_uri="http://localhost:9999/cb",
            base_url="https://staging.uipath.com",
            org_name="acme",
            tenant_name="Staging",
            scope="OR.Jobs",
            state="state_xyz",
        )
        storage.set(CONTEXT_KEY, stored.to_json())

        service = AuthService(oauth_config, storage=storage, clock=clock)

        assert service.config.base_url == "https://staging.uipath.com"
        assert service.config.tenant_name == "Staging"
        assert service.config.client_id == "other-client"
        assert service.token_manager.storage_key == "uipath_sdk_user_token-other-client"
        assert service.flow_state is FlowState.AWAITING_CALLBACK


class TestFlowContextHelpers:
    """Tests for module level helpers."""

    def test_invalid_stored_context_removed(self, storage):
        """Incomplete stored contexts are discarded."""
        storage.set(CONTEXT_KEY, '{"client_id": "client-123"}')

        assert get_stored_flow_context(storage) is None
        assert storage.get(CONTEXT_KEY) is None

    def test_corrupted_stored_context_removed(self, storage):
        storage.set(CONTEXT_KEY, "{corrupted")

        assert get_stored_flow_context(storage) is None
        assert storage.get(CONTEXT_KEY) is None

    def test_strip_callback_params_keeps_other_params(self):
        """Only code and state are removed."""
        url = "http://localhost:8765/callback?tab=jobs&code=abc&state=xyz"

        assert strip_callback_params(url) == "http://localhost:8765/callback?tab=jobs"
