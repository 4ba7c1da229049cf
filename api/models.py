"""
API request and response models for LedgerAPI REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
ledger/models.py, which own the internal domain representation. Route handlers
map between the two.

No response model has a password or password_hash field -- the stored hash
never leaves the server.
"""

import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from auth.models import Account
from auth.passwords import MAX_PASSWORD_BYTES
from ledger.models import Record

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one "@", something on each side, a dot in the domain.
# Deliverability is not our problem; uniqueness is enforced by the store.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

_CENTS = Decimal("0.01")


def _check_password_bytes(value: str) -> str:
    """bcrypt ignores everything past 72 bytes -- refuse instead of truncating."""
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


# Annotated type so the 72-byte rule applies wherever a new password is accepted.
_NewPassword = Annotated[str, Field(min_length=8, max_length=255), AfterValidator(_check_password_bytes)]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RecordKindEnum(str, Enum):
    income = "income"
    expense = "expense"


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class AccountCreate(BaseModel):
    """Request body for POST /api/v1/accounts (and PUT /api/v1/accounts/{id}).

    PUT replaces the whole account, so every field is required there too.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: _NewPassword


class AccountResponse(BaseModel):
    """Public view of an account."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    created_at: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(id=account.id, name=account.name, email=account.email, created_at=account.created_at or "")


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class LoginResponse(BaseModel):
    """Bearer token issued on successful login."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    account_id: int


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class RecordCreate(BaseModel):
    """Request body for POST /api/v1/records.

    There is no account_id field: the owner is always the account the bearer
    token was issued for.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    kind: RecordKindEnum
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(default=None, max_length=500)
    date: datetime.date

    @field_validator("amount")
    @classmethod
    def quantize_amount(cls, value: Decimal) -> Decimal:
        """Store every amount with exactly two decimal places."""
        return value.quantize(_CENTS)


class RecordResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    kind: str
    amount: Decimal
    description: Optional[str]
    date: str
    created_at: str

    @classmethod
    def from_record(cls, record: Record) -> "RecordResponse":
        return cls(
            id=record.id,
            kind=record.kind,
            amount=record.amount,
            description=record.description,
            date=record.date,
            created_at=record.created_at,
        )


class RecordSummaryResponse(BaseModel):
    """Response for GET /api/v1/records/summary."""

    model_config = ConfigDict(frozen=True)

    income: Decimal
    expense: Decimal
    balance: Decimal
    record_count: int


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
