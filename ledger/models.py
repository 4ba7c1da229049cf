"""
ledger/models.py -- Domain dataclasses for the financial ledger.

These are plain data containers (LedgerSummary derives its balance, nothing
more). Queries and totals live in ledger/store.py.

Separation of concerns: these dataclasses are the ledger's domain truth, just
as auth/models.py is the account's domain truth. Neither layer imports the other;
a record refers to its owner only by account_id.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

RECORD_KINDS = ("income", "expense")


@dataclass
class Record:
    """One income or expense entry owned by exactly one account.

    account_id always comes from the caller's verified token, never from the
    request body. amount is positive; kind decides the sign in totals.

    id is None before the record is written to the database.
    """

    account_id: int
    kind: str  # "income" | "expense"
    amount: Decimal
    date: str  # ISO 8601 date, YYYY-MM-DD
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass(frozen=True)
class LedgerSummary:
    """Totals over every record of one account."""

    income: Decimal
    expense: Decimal
    record_count: int

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense
