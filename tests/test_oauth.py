"""Unit tests for auth/oauth.py -- Google consent flow.

Authlib's OAuth2Session is patched out so no request leaves the process;
the prompt is a plain function returning the simulated redirect URL.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests
from authlib.integrations.base_client import OAuthError

from auth.errors import AuthError, IdentityConfigurationError, NetworkError, UserCancelled
from auth.oauth import GOOGLE_TOKEN_URL, GoogleConsentFlow, build_consent_flow
from core.config import Settings

_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth?client_id=cid&state=state123"
_CALLBACK = "http://localhost:8765/callback"


@pytest.fixture
def oauth_session():
    with patch("auth.oauth.OAuth2Session") as session_cls:
        session = session_cls.return_value
        session.create_authorization_url.return_value = (_AUTH_URL, "state123")
        session.fetch_token.return_value = {"access_token": "at", "id_token": "google-id-token"}
        yield session


def _flow(prompt) -> GoogleConsentFlow:
    return GoogleConsentFlow("cid", "secret", _CALLBACK, prompt)


class TestGoogleConsentFlow:
    def test_success_returns_id_token(self, oauth_session):
        redirect = f"{_CALLBACK}?code=abc&state=state123"
        prompt = MagicMock(return_value=redirect)

        assert _flow(prompt).run() == "google-id-token"

        prompt.assert_called_once_with(_AUTH_URL)
        oauth_session.fetch_token.assert_called_once_with(
            GOOGLE_TOKEN_URL, authorization_response=redirect, state="state123", timeout=10.0
        )

    @pytest.mark.parametrize("answer", [None, "", "   "])
    def test_no_redirect_is_user_cancelled(self, oauth_session, answer):
        with pytest.raises(UserCancelled):
            _flow(lambda _url: answer).run()
        oauth_session.fetch_token.assert_not_called()

    def test_access_denied_is_user_cancelled(self, oauth_session):
        with pytest.raises(UserCancelled) as exc_info:
            _flow(lambda _url: f"{_CALLBACK}?error=access_denied&state=state123").run()
        assert exc_info.value.code == "access_denied"

    def test_other_redirect_error_is_auth_error(self, oauth_session):
        with pytest.raises(AuthError) as exc_info:
            _flow(lambda _url: f"{_CALLBACK}?error=invalid_scope").run()
        assert not isinstance(exc_info.value, UserCancelled)

    def test_transport_failure_is_network_error(self, oauth_session):
        oauth_session.fetch_token.side_effect = requests.ConnectionError("unreachable")
        with pytest.raises(NetworkError):
            _flow(lambda _url: f"{_CALLBACK}?code=abc&state=state123").run()

    def test_oauth_error_keeps_code(self, oauth_session):
        oauth_session.fetch_token.side_effect = OAuthError(error="invalid_grant")
        with pytest.raises(AuthError) as exc_info:
            _flow(lambda _url: f"{_CALLBACK}?code=abc&state=state123").run()
        assert exc_info.value.code == "invalid_grant"

    def test_missing_id_token_is_auth_error(self, oauth_session):
        oauth_session.fetch_token.return_value = {"access_token": "at"}
        with pytest.raises(AuthError):
            _flow(lambda _url: f"{_CALLBACK}?code=abc&state=state123").run()

    def test_requires_client_credentials(self):
        with pytest.raises(IdentityConfigurationError):
            GoogleConsentFlow("", "", _CALLBACK, lambda _url: None)


class TestBuildConsentFlow:
    def test_disabled_without_google_credentials(self):
        settings = Settings(_env_file=None, google_client_id="", google_client_secret="")
        assert build_consent_flow(settings, lambda _url: None) is None

    def test_enabled_with_google_credentials(self):
        settings = Settings(_env_file=None, google_client_id="cid", google_client_secret="secret")
        flow = build_consent_flow(settings, lambda _url: None)
        assert flow is not None
        assert flow.redirect_uri == settings.google_redirect_uri
