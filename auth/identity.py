"""
auth/identity.py -- Identity provider client (Identity Toolkit REST API).

Wraps the Google Identity Toolkit v1 endpoints that back Firebase
Authentication:

  accounts:signInWithPassword -- email/password sign-in
  accounts:signUp             -- email/password account creation
  accounts:signInWithIdp      -- exchange a federated id_token for a session

The client owns the provider-side session: the signed-in ProviderUser, its
persistence (auth/store.py) and a single session-change subscription. The
subscriber is called once immediately with the restored user (or None) and
then after every sign-in and sign-out.

Error mapping (provider message code -> exception):
  EMAIL_NOT_FOUND, INVALID_PASSWORD, INVALID_LOGIN_CREDENTIALS, INVALID_EMAIL,
  MISSING_PASSWORD, USER_DISABLED, INVALID_IDP_RESPONSE  -> InvalidCredentials
  EMAIL_EXISTS                                           -> AccountExists
  WEAK_PASSWORD                                          -> WeakPassword
  connection errors, timeouts, HTTP 5xx                  -> NetworkError
  anything else                                          -> AuthError

Nothing is retried. Passwords and tokens are never logged.

Layer rule: no imports from resources/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Optional

import requests

from auth.errors import (
    AccountExists,
    AuthError,
    IdentityConfigurationError,
    InvalidCredentials,
    NetworkError,
    WeakPassword,
)
from auth.models import ProviderUser
from auth.oauth import GoogleConsentFlow
from auth.store import SessionPersistence
from core.config import Settings

logger = logging.getLogger("vet1stop.auth.identity")

SessionListener = Callable[[Optional[ProviderUser]], None]

_INVALID_CREDENTIAL_CODES = {
    "EMAIL_NOT_FOUND",
    "INVALID_PASSWORD",
    "INVALID_LOGIN_CREDENTIALS",
    "INVALID_EMAIL",
    "MISSING_PASSWORD",
    "USER_DISABLED",
    "INVALID_IDP_RESPONSE",
}


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


def _error_code(resp: requests.Response) -> str:
    """Extract the provider error code from an error response body.

    The message field looks like "WEAK_PASSWORD : Password should be at least
    6 characters"; only the part before " : " is the code.
    """
    try:
        message = resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"HTTP_{resp.status_code}"
    return str(message).split(" : ", 1)[0].strip()


def translate_error(resp: requests.Response) -> AuthError:
    """Map a failed Identity Toolkit response to the auth exception taxonomy."""
    if resp.status_code >= 500:
        return NetworkError(f"Identity provider error (HTTP {resp.status_code})", code=f"HTTP_{resp.status_code}")
    code = _error_code(resp)
    if code in _INVALID_CREDENTIAL_CODES:
        return InvalidCredentials("Invalid email or password.", code=code)
    if code == "EMAIL_EXISTS":
        return AccountExists("An account already exists for this email address.", code=code)
    if code == "WEAK_PASSWORD":
        return WeakPassword("Password is too weak.", code=code)
    return AuthError(f"Identity provider rejected the request: {code}", code=code)


def _provider_user(payload: dict[str, Any], provider_id: str) -> ProviderUser:
    missing = [k for k in ("localId", "idToken", "refreshToken") if not payload.get(k)]
    if missing:
        raise NetworkError(
            f"Identity provider response is missing {', '.join(missing)}.", code="malformed_response"
        )
    return ProviderUser(
        local_id=payload["localId"],
        id_token=payload["idToken"],
        refresh_token=payload["refreshToken"],
        email=payload.get("email") or None,
        display_name=payload.get("displayName") or None,
        photo_url=payload.get("photoUrl") or None,
        provider_id=provider_id,
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class IdentityProviderClient:
    """Client for the Identity Toolkit REST API with a single session subscription.

    Usage:
        client = IdentityProviderClient(api_key, persistence=SessionPersistence())
        unsubscribe = client.on_session_changed(handle_user)
        client.sign_in_with_password("vet@example.com", "secret")
        client.sign_out()
        unsubscribe()
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://identitytoolkit.googleapis.com/v1",
        persistence: Optional[SessionPersistence] = None,
        consent_flow: Optional[GoogleConsentFlow] = None,
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise IdentityConfigurationError("IDENTITY_API_KEY is required for sign-in operations")
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.persistence = persistence
        self.consent_flow = consent_flow
        self.timeout = timeout
        self._http = http or requests.Session()
        self._current: Optional[ProviderUser] = persistence.load() if persistence is not None else None
        self._listener: Optional[SessionListener] = None

    @property
    def current_user(self) -> Optional[ProviderUser]:
        return self._current

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def on_session_changed(self, listener: SessionListener) -> Callable[[], None]:
        """Register the session listener and return its unsubscribe callable.

        Only one listener may be registered at a time; registering a second
        raises RuntimeError. The listener fires immediately with the current
        (possibly restored) user.
        """
        if self._listener is not None:
            raise RuntimeError("A session listener is already registered")
        self._listener = listener

        def unsubscribe() -> None:
            if self._listener is listener:
                self._listener = None

        listener(self._current)
        return unsubscribe

    def _set_current(self, user: Optional[ProviderUser]) -> None:
        # Persist first: a failed write leaves the current user and listener unchanged.
        if self.persistence is not None:
            if user is None:
                self.persistence.clear()
            else:
                self.persistence.save(user)
        self._current = user
        if self._listener is not None:
            self._listener(user)

    # ------------------------------------------------------------------
    # Provider calls
    # ------------------------------------------------------------------

    def _post(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/accounts:{endpoint}"
        try:
            resp = self._http.post(url, params={"key": self._api_key}, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Identity provider unreachable (%s): %s", endpoint, e)
            raise NetworkError("Could not reach the identity provider.", code="network") from e
        if not resp.ok:
            error = translate_error(resp)
            logger.info("Identity provider rejected %s: %s", endpoint, error.code)
            raise error
        try:
            payload = resp.json()
        except ValueError as e:
            logger.warning("Identity provider returned a non-JSON body for %s", endpoint)
            raise NetworkError("Identity provider returned an unreadable response.", code="malformed_response") from e
        if not isinstance(payload, dict):
            raise NetworkError("Identity provider returned an unreadable response.", code="malformed_response")
        return payload

    def sign_in_with_password(self, email: str, password: str) -> ProviderUser:
        payload = self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        user = _provider_user(payload, "password")
        logger.info("Signed in user %s", user.local_id)
        self._set_current(user)
        return user

    def create_account_with_password(self, email: str, password: str) -> ProviderUser:
        """Create an account. The provider signs the new user in immediately."""
        payload = self._post(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        user = _provider_user(payload, "password")
        logger.info("Created account %s", user.local_id)
        self._set_current(user)
        return user

    def sign_in_with_idp(self, id_token: str, provider_id: str, request_uri: str = "http://localhost") -> ProviderUser:
        """Trade a federated provider's id_token for a provider session."""
        payload = self._post(
            "signInWithIdp",
            {
                "postBody": f"id_token={id_token}&providerId={provider_id}",
                "requestUri": request_uri,
                "returnSecureToken": True,
                "returnIdpCredential": True,
            },
        )
        user = _provider_user(payload, provider_id)
        logger.info("Signed in user %s via %s", user.local_id, provider_id)
        self._set_current(user)
        return user

    def sign_in_interactive_federated(self) -> ProviderUser:
        """Run the configured consent flow, then sign in with its id_token."""
        if self.consent_flow is None:
            raise IdentityConfigurationError("Federated sign-in is not configured")
        id_token = self.consent_flow.run()
        return self.sign_in_with_idp(id_token, self.consent_flow.provider_id, self.consent_flow.redirect_uri)

    def sign_out(self) -> None:
        """Forget the signed-in user. Always notifies the listener, even if already signed out.

        ID tokens are stateless, so there is no remote call to make: clearing
        local state and persistence is the whole of sign-out.
        """
        if self._current is not None:
            logger.info("Signed out user %s", self._current.local_id)
        self._set_current(None)

    def close(self) -> None:
        self._http.close()
        if self.persistence is not None:
            self.persistence.close()


def build_identity_client(
    settings: Settings,
    persistence: Optional[SessionPersistence] = None,
    consent_flow: Optional[GoogleConsentFlow] = None,
) -> IdentityProviderClient:
    """Construct an IdentityProviderClient from application settings."""
    return IdentityProviderClient(
        api_key=settings.identity_api_key,
        base_url=settings.identity_base_url,
        persistence=persistence,
        consent_flow=consent_flow,
        timeout=settings.identity_timeout_seconds,
    )
