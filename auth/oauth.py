"""
auth/oauth.py -- Google consent flow for federated sign-in, via Authlib.

The flow is the OAuth 2.0 authorization-code grant with the openid scope:

  1. Build the Google authorization URL (state + nonce generated by Authlib).
  2. Hand the URL to the caller-supplied prompt. The prompt shows it to the
     user (browser, terminal, ...) and returns the URL Google redirected back
     to, or None if the user gave up.
  3. Exchange the code for tokens and return Google's id_token. The identity
     client then trades that id_token for a provider session
     (accounts:signInWithIdp).

Error mapping:
  prompt returned None / ""          -> UserCancelled
  redirect carries error=access_denied -> UserCancelled
  transport failure during exchange  -> NetworkError
  any other OAuth error              -> AuthError (code = OAuth error code)

The OAuth state parameter (CSRF protection) is checked by Authlib when the
redirect URL is parsed -- never trust the code without it.

Layer rule: no imports from resources/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Optional
from urllib.parse import parse_qs, urlparse

import requests
from authlib.common.errors import AuthlibBaseError
from authlib.common.security import generate_token
from authlib.integrations.requests_client import OAuth2Session

from auth.errors import AuthError, IdentityConfigurationError, NetworkError, UserCancelled
from core.config import Settings

logger = logging.getLogger("vet1stop.auth.oauth")

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 -- URL, not a password
GOOGLE_SCOPE = "openid email profile"

# Receives the authorization URL, returns the redirect URL (None = cancelled).
ConsentPrompt = Callable[[str], Optional[str]]


class GoogleConsentFlow:
    """One-shot interactive Google consent. Call run() once per sign-in attempt."""

    provider_id = "google.com"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        prompt: ConsentPrompt,
        timeout: float = 10.0,
    ) -> None:
        if not client_id or not client_secret:
            raise IdentityConfigurationError("Google sign-in requires GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET")
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.prompt = prompt
        self.timeout = timeout

    def _new_session(self) -> OAuth2Session:
        return OAuth2Session(
            client_id=self.client_id,
            client_secret=self.client_secret,
            scope=GOOGLE_SCOPE,
            redirect_uri=self.redirect_uri,
        )

    def run(self) -> str:
        """Run the consent flow and return Google's id_token."""
        client = self._new_session()
        url, state = client.create_authorization_url(GOOGLE_AUTHORIZE_URL, nonce=generate_token(20))
        logger.debug("Starting Google consent flow")

        redirect = self.prompt(url)
        if not redirect or not redirect.strip():
            logger.info("Google consent flow cancelled by user")
            raise UserCancelled("Sign-in was cancelled.", code="cancelled")

        params = parse_qs(urlparse(redirect.strip()).query)
        error = (params.get("error") or [None])[0]
        if error == "access_denied":
            logger.info("Google consent denied by user")
            raise UserCancelled("Sign-in was cancelled.", code=error)
        if error:
            raise AuthError(f"Google sign-in failed: {error}", code=error)

        try:
            token = client.fetch_token(
                GOOGLE_TOKEN_URL,
                authorization_response=redirect.strip(),
                state=state,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Google token exchange failed: %s", e)
            raise NetworkError("Could not reach Google to complete sign-in.", code="network") from e
        except AuthlibBaseError as e:
            logger.warning("Google token exchange rejected: %s", e.error)
            raise AuthError(f"Google sign-in failed: {e.error}", code=e.error) from e
        finally:
            client.close()

        id_token = token.get("id_token")
        if not id_token:
            raise AuthError("Google sign-in failed: no id_token in token response", code="missing_id_token")
        return id_token


def build_consent_flow(settings: Settings, prompt: ConsentPrompt) -> Optional[GoogleConsentFlow]:
    """Return a GoogleConsentFlow when Google credentials are configured, else None."""
    if not settings.google_enabled:
        return None
    return GoogleConsentFlow(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=settings.google_redirect_uri,
        prompt=prompt,
        timeout=settings.identity_timeout_seconds,
    )
