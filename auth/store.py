"""
auth/store.py -- Identity repositories.

Pattern: Repository + Data Mapper. IdentityRepository is the interface the
rest of the code depends on; AuthService and SessionIssuer receive one
instance and use it for both registration and login, so there is exactly one
source of truth per process.

  InMemoryIdentityStore -- dict guarded by a threading.Lock. Used by tests and
                           by IDENTITY_BACKEND=memory.
  SqlIdentityStore      -- SQLAlchemy Core over the users table. Used in
                           production (SQLite or PostgreSQL).

Security:
  All queries are SQLAlchemy expression constructs with bound parameters. The
  repository interface only accepts typed values (a username, an Identity),
  never query text, so callers have no way to splice strings into SQL.
  Engines are created with hide_parameters=True so a failing statement never
  writes a password digest into an exception message or a log line.

Write semantics:
  put() is last-write-wins on username. An existing row keeps its id and
  created_at; digest, role and updated_at are all replaced. Re-registering an
  operator's name through the public route therefore leaves a plain user.

Layer rule: no imports from api/ or resources/.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.models import Identity
from core.errors import InternalError

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'authgate_auth.db'}"

# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class IdentityRepository(Protocol):
    def get(self, username: str) -> Identity | None: ...

    def put(self, identity: Identity) -> None: ...

    def set_role(self, username: str, role: str) -> bool: ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------


class InMemoryIdentityStore:
    """Thread-safe in-process identity map.

    Every read and write holds the lock. Identities are copied on the way in
    and out so callers cannot mutate stored state without going through put().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._identities: dict[str, Identity] = {}
        self._next_id = 1

    def get(self, username: str) -> Identity | None:
        with self._lock:
            identity = self._identities.get(username)
            return replace(identity) if identity is not None else None

    def put(self, identity: Identity) -> None:
        with self._lock:
            existing = self._identities.get(identity.username)
            if existing is None:
                stored = replace(identity, id=self._next_id)
                self._next_id += 1
            else:
                stored = replace(identity, id=existing.id)
            self._identities[identity.username] = stored

    def set_role(self, username: str, role: str) -> bool:
        with self._lock:
            existing = self._identities.get(username)
            if existing is None:
                return False
            self._identities[username] = replace(existing, role=role)
            return True

    def usernames(self) -> list[str]:
        with self._lock:
            return sorted(self._identities)

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# SQL repository
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Dialects with a native atomic upsert. Anything else falls back to
# UPDATE-then-INSERT inside one transaction.
_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers never block behind a registration.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqlIdentityStore:
    """Repository over the users table.

    Usage:
        store = SqlIdentityStore("postgresql+psycopg2://...")
        store.put(Identity(username="alice", password_digest=hash_password("S3cret!")))
        identity = store.get("alice")
        store.close()

    Database failures are re-raised as InternalError (HTTP 500) with the
    original exception chained for the server-side traceback.
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, hide_parameters=True)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def get(self, username: str) -> Identity | None:
        """Look up an identity by exact username (case-sensitive)."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(select(_users).where(_users.c.username == username)).fetchone()
        except SQLAlchemyError as exc:
            raise InternalError("identity store unavailable") from exc
        return _row_to_identity(row) if row is not None else None

    def put(self, identity: Identity) -> None:
        """Insert or replace the identity (last write wins). The row id is kept."""
        now = _now_iso()
        values = {
            "username": identity.username,
            "password_hash": identity.password_digest,
            "role": identity.role,
            "created_at": now,
            "updated_at": now,
        }
        try:
            with self.engine.begin() as conn:
                insert = _UPSERT_INSERTS.get(self.engine.dialect.name)
                if insert is not None:
                    stmt = insert(_users).values(**values)
                    stmt = stmt.on_conflict_do_update(
                        index_elements=[_users.c.username],
                        set_={
                            "password_hash": stmt.excluded.password_hash,
                            "role": stmt.excluded.role,
                            "updated_at": stmt.excluded.updated_at,
                        },
                    )
                    conn.execute(stmt)
                    return
                result = conn.execute(
                    _users.update()
                    .where(_users.c.username == identity.username)
                    .values(password_hash=identity.password_digest, role=identity.role, updated_at=now)
                )
                if result.rowcount == 0:
                    conn.execute(_users.insert().values(**values))
        except SQLAlchemyError as exc:
            raise InternalError("identity store unavailable") from exc

    def set_role(self, username: str, role: str) -> bool:
        """Change an existing identity's role. Returns False if the username is unknown.

        Only the CLI calls this; no HTTP route can change a role.
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.update().where(_users.c.username == username).values(role=role, updated_at=_now_iso())
                )
        except SQLAlchemyError as exc:
            raise InternalError("identity store unavailable") from exc
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        username=row.username,
        password_digest=row.password_hash,
        role=row.role,
    )
