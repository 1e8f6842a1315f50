"""Exceptions raised by the identity layer.

Every auth-side failure inherits from AuthError. Provider rejections keep the
provider's error code on `code` so callers can log it; user-facing wording is
the caller's job.
"""

from typing import Optional


class AuthError(Exception):
    """Base exception for identity provider and session errors.

    Raised directly for provider rejections that have no more specific kind.

    Example:
        try:
            manager.sign_in(email, password)
        except AuthError as e:
            logger.warning("Sign-in failed: %s", e.code)
    """

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code


class InvalidCredentials(AuthError):
    """Raised when the provider rejects an email/password or federated credential."""

    pass


class AccountExists(AuthError):
    """Raised by sign-up when an account already exists for the email address."""

    pass


class WeakPassword(AuthError):
    """Raised by sign-up when the provider rejects the password as too weak."""

    pass


class UserCancelled(AuthError):
    """Raised when the user abandons or denies the federated consent flow."""

    pass


class NetworkError(AuthError):
    """Raised when the provider cannot be reached or fails server-side."""

    pass


class SessionManagerNotStarted(AuthError):
    """Raised when a session operation is called before SessionManager.start().

    Example:
        >>> SessionManager(provider).sign_out()
        Traceback (most recent call last):
        ...
        SessionManagerNotStarted: Session manager has not been started
    """

    pass


class IdentityConfigurationError(AuthError):
    """Raised when an identity operation needs configuration that is missing."""

    pass


class SessionStoreUnavailable(AuthError):
    """Raised when the persisted-session database cannot be opened or written."""

    pass
