"""
sandbox/store.py -- SQLAlchemy Core persistence for sandbox users and revoked tokens.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Token revocation: tokens are stateless JWTs, so logout records the token's
jti in revoked_tokens. Entries past their own expiry are purged on write.

Layer rule: no imports from workflow/, client/, or state/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from sandbox.models import User

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'sessiongate_sandbox.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("is_superuser", Integer, nullable=False, server_default="0"),
    Column("is_system_auditor", Integer, nullable=False, server_default="0"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("last_login", Text),  # ISO 8601 timestamp of last token issue
)

_revoked = Table(
    "revoked_tokens",
    _metadata,
    Column("jti", String(64), primary_key=True),
    Column("expires_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode. Set per-connection; PRAGMAs are not pooled."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserStore:
    """Repository for sandbox users.

    Usage:
        store = UserStore()
        store.create_user(User(username="admin", hashed_password=hash_password("secret"), is_superuser=True))
        user = store.get_by_username("admin")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().limit(1)).fetchone()
        return row is not None

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    hashed_password=user.hashed_password,
                    is_superuser=1 if user.is_superuser else 0,
                    is_system_auditor=1 if user.is_system_auditor else 0,
                    is_active=1 if user.is_active else 0,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive)."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def set_active(self, user_id: int, is_active: bool) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(is_active=1 if is_active else 0))
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, user_id: int) -> None:
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=_now_iso()))
            conn.commit()

    # ------------------------------------------------------------------
    # Token revocation
    # ------------------------------------------------------------------

    def revoke_token(self, jti: str, expires_at: datetime) -> None:
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(_revoked.delete().where(_revoked.c.expires_at < now))
            exists = conn.execute(_revoked.select().where(_revoked.c.jti == jti)).fetchone()
            if exists is None:
                conn.execute(_revoked.insert().values(jti=jti, expires_at=expires_at.astimezone(timezone.utc).isoformat()))
            conn.commit()

    def is_revoked(self, jti: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(_revoked.select().where(_revoked.c.jti == jti)).fetchone()
        return row is not None

    def close(self) -> None:
        self.engine.dispose()


def _row_to_user(row) -> User:
    m = row._mapping
    return User(
        id=m["id"],
        username=m["username"],
        hashed_password=m["hashed_password"],
        is_superuser=bool(m["is_superuser"]),
        is_system_auditor=bool(m["is_system_auditor"]),
        is_active=bool(m["is_active"]),
        created_at=m["created_at"],
        last_login=m["last_login"],
    )
