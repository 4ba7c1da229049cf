"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper (same as ledger/store.py).
AccountStore is the repository; _row_to_account is the mapper.
Route and service code never touches SQL directly.

AccountStore also satisfies the AccountLookup protocol consumed by
auth/service.Authenticator -- get_by_email() returns None for "not found",
which is a normal outcome, not an exception.

Security:
  All queries use bound parameters. No f-strings in SQL.
  password_hash is stored exactly as PasswordHasher.hash() produced it.
  Changing a password replaces the hash; the old value is not kept.

Emails are normalized (stripped, lowercased) on write and on lookup so
"Ana@Example.com" and "ana@example.com" are the same login.

Layer rule: no imports from api/ or ledger/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from auth.models import Account

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    # Tokens outlive account deletion, so an id must never be handed out twice.
    # Without AUTOINCREMENT SQLite reuses the highest rowid after a delete.
    sqlite_autoincrement=True,
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore("sqlite:///ledger.db")
        account_id = store.create_account(Account(name="Ana", email="ana@example.com", password_hash=h))
        account = store.get_by_email("ana@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email is already registered.
        Callers translate that into a 409 response.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.insert().values(
                    name=account.name,
                    email=normalize_email(account.email),
                    password_hash=account.password_hash,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, account_id: int) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by its login email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == normalize_email(email))).fetchone()
        return _row_to_account(row) if row is not None else None

    def update_account(self, account_id: int, **fields) -> bool:
        """Update mutable fields on an existing account.

        Accepted fields: name, email, password_hash.
        Returns True if a row was updated, False if account_id was not found.
        Raises sqlalchemy.exc.IntegrityError if the new email is taken.
        """
        unknown = set(fields) - {"name", "email", "password_hash"}
        if unknown:
            raise ValueError(f"Unknown account fields: {unknown!r}")
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_account(self, account_id: int) -> bool:
        """Permanently delete an account. Returns True if deleted, False if not found.

        Records owned by the account live in the ledger database and are removed
        by the caller (RecordStore.delete_for_account) -- auth/ does not know
        about ledger/.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.delete().where(_accounts.c.id == account_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )
