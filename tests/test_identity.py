"""Unit tests for auth/identity.py -- Identity Toolkit client.

All HTTP goes through a MagicMock standing in for requests.Session, so tests
assert on the exact endpoint and body and script provider responses.

Covers:
- request shape for password sign-in, sign-up and IdP sign-in
- provider error codes -> exception taxonomy
- transport failures and 5xx -> NetworkError
- single-listener subscription, immediate delivery, persistence restore
- sign-out always notifies and clears persistence
"""

from unittest.mock import MagicMock

import pytest
import requests
from sqlalchemy.exc import OperationalError

from auth.errors import (
    AccountExists,
    AuthError,
    IdentityConfigurationError,
    InvalidCredentials,
    NetworkError,
    SessionStoreUnavailable,
    UserCancelled,
    WeakPassword,
)
from auth.identity import IdentityProviderClient
from auth.models import ProviderUser

_BASE = "https://identitytoolkit.googleapis.com/v1"


@pytest.fixture
def client(http, persistence):
    return IdentityProviderClient("test-api-key", base_url=_BASE, persistence=persistence, http=http)


class TestRequests:
    def test_sign_in_posts_to_sign_in_with_password(self, client, http, http_response, provider_payload):
        http.post.return_value = http_response(200, provider_payload())

        user = client.sign_in_with_password("vet@example.com", "hunter22")

        http.post.assert_called_once_with(
            f"{_BASE}/accounts:signInWithPassword",
            params={"key": "test-api-key"},
            json={"email": "vet@example.com", "password": "hunter22", "returnSecureToken": True},
            timeout=10.0,
        )
        assert user.local_id == "uid-123"
        assert user.display_name == "Pat Veteran"
        assert user.provider_id == "password"
        assert client.current_user == user

    def test_sign_up_posts_to_sign_up(self, client, http, http_response, provider_payload):
        http.post.return_value = http_response(200, provider_payload(displayName=""))
        user = client.create_account_with_password("new@example.com", "longpassword")
        assert http.post.call_args.args[0] == f"{_BASE}/accounts:signUp"
        assert user.display_name is None

    def test_sign_in_with_idp_sends_id_token(self, client, http, http_response, provider_payload):
        http.post.return_value = http_response(200, provider_payload())
        user = client.sign_in_with_idp("google-id-token", "google.com", "http://localhost:8765/callback")
        body = http.post.call_args.kwargs["json"]
        assert http.post.call_args.args[0] == f"{_BASE}/accounts:signInWithIdp"
        assert body["postBody"] == "id_token=google-id-token&providerId=google.com"
        assert body["requestUri"] == "http://localhost:8765/callback"
        assert user.provider_id == "google.com"

    def test_missing_api_key_raises(self):
        with pytest.raises(IdentityConfigurationError):
            IdentityProviderClient("")


class TestErrorMapping:
    @pytest.mark.parametrize(
        "message",
        ["EMAIL_NOT_FOUND", "INVALID_PASSWORD", "INVALID_LOGIN_CREDENTIALS", "USER_DISABLED", "INVALID_EMAIL"],
    )
    def test_credential_errors(self, client, http, error_response, message):
        http.post.return_value = error_response(message)
        with pytest.raises(InvalidCredentials) as exc_info:
            client.sign_in_with_password("vet@example.com", "wrong")
        assert exc_info.value.code == message

    def test_email_exists(self, client, http, error_response):
        http.post.return_value = error_response("EMAIL_EXISTS")
        with pytest.raises(AccountExists):
            client.create_account_with_password("vet@example.com", "longpassword")

    def test_weak_password_with_detail_suffix(self, client, http, error_response):
        http.post.return_value = error_response("WEAK_PASSWORD : Password should be at least 6 characters")
        with pytest.raises(WeakPassword) as exc_info:
            client.create_account_with_password("vet@example.com", "123")
        assert exc_info.value.code == "WEAK_PASSWORD"

    def test_connection_error_is_network_error(self, client, http):
        http.post.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(NetworkError):
            client.sign_in_with_password("vet@example.com", "hunter22")

    def test_timeout_is_network_error(self, client, http):
        http.post.side_effect = requests.Timeout("timed out")
        with pytest.raises(NetworkError):
            client.create_account_with_password("vet@example.com", "hunter22")

    def test_server_error_is_network_error(self, client, http, http_response):
        http.post.return_value = http_response(503, {})
        with pytest.raises(NetworkError):
            client.sign_in_with_password("vet@example.com", "hunter22")

    def test_unmapped_code_is_generic_auth_error(self, client, http, error_response):
        http.post.return_value = error_response("TOO_MANY_ATTEMPTS_TRY_LATER")
        with pytest.raises(AuthError) as exc_info:
            client.sign_in_with_password("vet@example.com", "hunter22")
        assert type(exc_info.value) is AuthError
        assert exc_info.value.code == "TOO_MANY_ATTEMPTS_TRY_LATER"

    def test_non_json_error_body(self, client, http, http_response):
        resp = http_response(400)
        resp.json.side_effect = ValueError("no json")
        http.post.return_value = resp
        with pytest.raises(AuthError) as exc_info:
            client.sign_in_with_password("vet@example.com", "hunter22")
        assert exc_info.value.code == "HTTP_400"

    def test_non_json_success_body_is_network_error(self, client, http, http_response):
        resp = http_response(200)
        resp.json.side_effect = ValueError("not json")
        http.post.return_value = resp
        with pytest.raises(NetworkError) as exc_info:
            client.sign_in_with_password("vet@example.com", "hunter22")
        assert exc_info.value.code == "malformed_response"
        assert client.current_user is None

    @pytest.mark.parametrize("key", ["localId", "idToken", "refreshToken"])
    def test_success_body_missing_field_is_network_error(self, client, http, http_response, provider_payload, key):
        payload = provider_payload()
        del payload[key]
        http.post.return_value = http_response(200, payload)
        with pytest.raises(NetworkError, match=key):
            client.create_account_with_password("new@example.com", "longpassword")
        assert client.current_user is None

    def test_failed_sign_in_leaves_session_unchanged(self, client, http, error_response):
        listener = MagicMock()
        client.on_session_changed(listener)
        http.post.return_value = error_response("INVALID_PASSWORD")
        with pytest.raises(InvalidCredentials):
            client.sign_in_with_password("vet@example.com", "wrong")
        assert client.current_user is None
        listener.assert_called_once_with(None)  # only the initial delivery


class TestSubscription:
    def test_listener_fires_immediately_with_none(self, client):
        listener = MagicMock()
        client.on_session_changed(listener)
        listener.assert_called_once_with(None)

    def test_listener_receives_sign_in_and_sign_out(self, client, http, http_response, provider_payload):
        listener = MagicMock()
        client.on_session_changed(listener)
        http.post.return_value = http_response(200, provider_payload())

        client.sign_in_with_password("vet@example.com", "hunter22")
        client.sign_out()

        delivered = [c.args[0] for c in listener.call_args_list]
        assert delivered[0] is None
        assert delivered[1].local_id == "uid-123"
        assert delivered[2] is None

    def test_second_listener_rejected(self, client):
        client.on_session_changed(MagicMock())
        with pytest.raises(RuntimeError):
            client.on_session_changed(MagicMock())

    def test_unsubscribe_stops_delivery_and_frees_slot(self, client):
        listener = MagicMock()
        unsubscribe = client.on_session_changed(listener)
        unsubscribe()
        client.sign_out()
        listener.assert_called_once_with(None)
        client.on_session_changed(MagicMock())  # slot is free again

    def test_sign_out_is_idempotent_and_always_notifies(self, client):
        listener = MagicMock()
        client.on_session_changed(listener)
        client.sign_out()
        client.sign_out()
        assert listener.call_count == 3
        assert all(c.args[0] is None for c in listener.call_args_list)


class TestPersistence:
    def test_sign_in_is_persisted(self, client, persistence, http, http_response, provider_payload):
        http.post.return_value = http_response(200, provider_payload())
        client.sign_in_with_password("vet@example.com", "hunter22")
        assert persistence.load().local_id == "uid-123"

    def test_persisted_user_restored_on_first_observation(self, persistence, http):
        persistence.save(ProviderUser(local_id="uid-restored", id_token="t", refresh_token="r", email="a@b.c"))
        client = IdentityProviderClient("test-api-key", persistence=persistence, http=http)
        listener = MagicMock()
        client.on_session_changed(listener)
        assert listener.call_args.args[0].local_id == "uid-restored"
        http.post.assert_not_called()

    def test_sign_out_clears_persistence(self, client, persistence, http, http_response, provider_payload):
        http.post.return_value = http_response(200, provider_payload())
        client.sign_in_with_password("vet@example.com", "hunter22")
        client.sign_out()
        assert persistence.load() is None

    def test_failed_save_leaves_session_unchanged(self, client, persistence, http, http_response, provider_payload):
        listener = MagicMock()
        client.on_session_changed(listener)
        persistence.engine = MagicMock()
        persistence.engine.connect.side_effect = OperationalError("INSERT", {}, Exception("disk I/O error"))
        http.post.return_value = http_response(200, provider_payload())

        with pytest.raises(SessionStoreUnavailable):
            client.sign_in_with_password("vet@example.com", "hunter22")

        assert client.current_user is None
        listener.assert_called_once_with(None)


class TestFederated:
    def test_runs_consent_flow_then_idp_sign_in(self, http, http_response, provider_payload):
        flow = MagicMock()
        flow.run.return_value = "google-id-token"
        flow.provider_id = "google.com"
        flow.redirect_uri = "http://localhost:8765/callback"
        client = IdentityProviderClient("test-api-key", consent_flow=flow, http=http)
        http.post.return_value = http_response(200, provider_payload())

        user = client.sign_in_interactive_federated()

        assert user.provider_id == "google.com"
        assert "id_token=google-id-token" in http.post.call_args.kwargs["json"]["postBody"]

    def test_cancelled_consent_makes_no_provider_call(self, http):
        flow = MagicMock()
        flow.run.side_effect = UserCancelled("Sign-in was cancelled.", code="cancelled")
        client = IdentityProviderClient("test-api-key", consent_flow=flow, http=http)
        with pytest.raises(UserCancelled):
            client.sign_in_interactive_federated()
        http.post.assert_not_called()

    def test_not_configured_raises(self, http):
        client = IdentityProviderClient("test-api-key", http=http)
        with pytest.raises(IdentityConfigurationError):
            client.sign_in_interactive_federated()
