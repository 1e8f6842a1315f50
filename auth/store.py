"""
auth/store.py -- SQLAlchemy Core persistence for the signed-in provider user.

Pattern: Repository + Data Mapper (same as resources/store.py).
SessionPersistence is the repository; _row_to_provider_user is the mapper.

The table holds at most one row (id=1 enforced by CHECK constraint): the user
currently signed in on this installation. The identity client reads it when
the first session listener registers, so a restarted process comes back
signed in.

Security:
  All queries use bound parameters. Tokens are stored as issued by the
  provider; protect the database file like any credential store.

Layer rule: no imports from resources/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from sqlalchemy import CheckConstraint, Column, Integer, MetaData, String, Table, Text, create_engine, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError

from auth.errors import SessionStoreUnavailable
from auth.models import ProviderUser
from core.config import now_iso

logger = logging.getLogger("vet1stop.auth.store")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'vet1stop_session.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_session = Table(
    "persisted_session",
    _metadata,
    Column("id", Integer, primary_key=True),
    Column("local_id", String(128), nullable=False),
    Column("email", String(255)),
    Column("display_name", String(255)),
    Column("photo_url", Text),
    Column("provider_id", String(50), nullable=False),
    Column("id_token", Text, nullable=False),
    Column("refresh_token", Text, nullable=False),
    Column("updated_at", String(32), nullable=False),
    CheckConstraint("id = 1", name="ck_single_session"),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SessionPersistence:
    """Single-row store for the signed-in provider user.

    Raises SessionStoreUnavailable (driver error chained) when the database
    cannot be opened or written.

    Usage:
        persistence = SessionPersistence()
        persistence.save(user)
        user = persistence.load()   # ProviderUser or None
        persistence.clear()
        persistence.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        try:
            _metadata.create_all(self.engine)
        except OperationalError as e:
            self.engine.dispose()
            raise SessionStoreUnavailable(f"Session store unavailable: {e.orig}") from e

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        try:
            with self.engine.connect() as conn:
                yield conn
        except OperationalError as e:
            logger.error("Session store unavailable: %s", e.orig)
            raise SessionStoreUnavailable(f"Session store unavailable: {e.orig}") from e

    def load(self) -> Optional[ProviderUser]:
        with self._connect() as conn:
            row = conn.execute(select(_session).where(_session.c.id == 1)).fetchone()
        return _row_to_provider_user(row) if row is not None else None

    def save(self, user: ProviderUser) -> None:
        """Replace the stored user. Delete-then-insert keeps this dialect-neutral."""
        with self._connect() as conn:
            conn.execute(_session.delete())
            conn.execute(
                _session.insert().values(
                    id=1,
                    local_id=user.local_id,
                    email=user.email,
                    display_name=user.display_name,
                    photo_url=user.photo_url,
                    provider_id=user.provider_id,
                    id_token=user.id_token,
                    refresh_token=user.refresh_token,
                    updated_at=now_iso(),
                )
            )
            conn.commit()

    def clear(self) -> None:
        """Remove the stored user. Safe to call when nothing is stored."""
        with self._connect() as conn:
            conn.execute(_session.delete())
            conn.commit()

    def close(self) -> None:
        self.engine.dispose()


def _row_to_provider_user(row) -> ProviderUser:
    return ProviderUser(
        local_id=row.local_id,
        email=row.email,
        display_name=row.display_name,
        photo_url=row.photo_url,
        provider_id=row.provider_id,
        id_token=row.id_token,
        refresh_token=row.refresh_token,
    )
