"""
auth/models.py -- Domain dataclasses for identity and session state.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in resources/models.py -- dataclasses own domain shape; the identity client
and session manager do the work.

Layer rule: no imports from resources/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Session:
    """The authenticated identity exposed to the rest of the application.

    Read-only to consumers. Tokens are deliberately absent: they stay inside
    the identity client (see ProviderUser).
    """

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


class SessionStatus(str, Enum):
    UNINITIALIZED = "uninitialized"  # manager not started, no subscription
    LOADING = "loading"  # subscribed, provider has not reported yet
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class SessionState:
    """Snapshot delivered to session listeners.

    session is set only when status is AUTHENTICATED. LOADING must be treated
    as "not yet known", never as signed out.
    """

    status: SessionStatus
    session: Optional[Session] = None

    @property
    def is_resolved(self) -> bool:
        return self.status in (SessionStatus.AUTHENTICATED, SessionStatus.UNAUTHENTICATED)


@dataclass
class ProviderUser:
    """The provider's view of a signed-in user, tokens included.

    Internal to auth/identity.py and auth/store.py. local_id is the provider's
    stable user ID; provider_id is "password" or the federated provider
    ("google.com").
    """

    local_id: str
    id_token: str
    refresh_token: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    provider_id: str = "password"
