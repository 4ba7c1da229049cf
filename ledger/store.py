"""
ledger/store.py -- SQLAlchemy-backed persistence layer for ledger records.

Uses SQLAlchemy Core (not ORM) so the dataclasses in ledger/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. RecordStore is the repository; _row_to_record
is the mapper. Route handlers never touch SQL directly.

Ownership: every read and delete takes the caller's account_id and puts it in
the WHERE clause. A record that belongs to another account is indistinguishable
from a record that does not exist -- both come back as None.

Amounts are stored as decimal strings. SQLite has no native decimal type and
binary floats would drift on money.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = RecordStore("sqlite:///ledger.db")
    record_id = store.create_record(Record(account_id=1, kind="income", amount=Decimal("10.00"), date="2024-05-01"))
    records = store.list_records(account_id=1)
    store.close()
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

from ledger.models import RECORD_KINDS, LedgerSummary, Record

logger = logging.getLogger("ledgerapi.ledger")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_records = Table(
    "records",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", Integer, nullable=False, index=True),
    Column("kind", String(10), nullable=False),  # "income" | "expense"
    Column("amount", String(32), nullable=False),  # Decimal as text
    Column("description", Text),
    Column("date", String(10), nullable=False),  # YYYY-MM-DD
    Column("created_at", String(32), nullable=False),
    sqlite_autoincrement=True,  # record ids are never reused after a delete
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode. Set per-connection; PRAGMAs are not pooled."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RecordStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # SQLite requires check_same_thread=False when used from FastAPI's
            # threadpool, where one pooled connection may serve several threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def create_record(self, record: Record) -> int:
        """Insert a new record and return its assigned database ID.

        Raises ValueError for an unknown kind or a non-positive amount.
        """
        if record.kind not in RECORD_KINDS:
            raise ValueError(f"Unknown record kind: {record.kind!r}")
        if record.amount <= 0:
            raise ValueError("Record amount must be positive.")
        with self.engine.connect() as conn:
            result = conn.execute(
                _records.insert().values(
                    account_id=record.account_id,
                    kind=record.kind,
                    amount=str(record.amount),
                    description=record.description,
                    date=record.date,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def list_records(self, account_id: int) -> list[Record]:
        """Return every record owned by account_id, newest date first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _records.select()
                .where(_records.c.account_id == account_id)
                .order_by(_records.c.date.desc(), _records.c.id.desc())
            ).fetchall()
        return [_row_to_record(r) for r in rows]

    def get_record(self, record_id: int, account_id: int) -> Optional[Record]:
        """Fetch one record if it exists AND belongs to account_id. Otherwise None."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _records.select().where((_records.c.id == record_id) & (_records.c.account_id == account_id))
            ).fetchone()
        return _row_to_record(row) if row is not None else None

    def delete_record(self, record_id: int, account_id: int) -> Optional[Record]:
        """Delete a record owned by account_id and return it. None if not found or not owned.

        Both conditions must match, so knowing another account's record id is
        not enough to delete it [IDOR guard].
        """
        with self.engine.connect() as conn:
            where = (_records.c.id == record_id) & (_records.c.account_id == account_id)
            row = conn.execute(_records.select().where(where)).fetchone()
            if row is None:
                return None
            conn.execute(_records.delete().where(where))
            conn.commit()
        return _row_to_record(row)

    def delete_for_account(self, account_id: int) -> int:
        """Delete every record owned by account_id. Returns the number of rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_records.delete().where(_records.c.account_id == account_id))
            conn.commit()
        if result.rowcount:
            logger.info("Deleted %d records for account_id=%d", result.rowcount, account_id)
        return result.rowcount

    def summary(self, account_id: int) -> LedgerSummary:
        """Return income and expense totals for account_id.

        Summed in Python with Decimal -- the amounts are text columns, and SQL
        SUM() over text would coerce to float.
        """
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_records.c.kind, _records.c.amount).where(_records.c.account_id == account_id)
            ).fetchall()
        income = Decimal("0")
        expense = Decimal("0")
        for kind, amount in rows:
            if kind == "income":
                income += Decimal(amount)
            else:
                expense += Decimal(amount)
        return LedgerSummary(income=income, expense=expense, record_count=len(rows))

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_record(row) -> Record:
    return Record(
        id=row.id,
        account_id=row.account_id,
        kind=row.kind,
        amount=Decimal(row.amount),
        description=row.description,
        date=row.date,
        created_at=row.created_at,
    )
