"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in ledger/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/ or ledger/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Account:
    """An account that owns ledger records.

    email is the identifying key used at login. password_hash is the bcrypt
    string produced by PasswordHasher.hash() -- the plaintext is never stored
    and password_hash is never serialized into an API response.
    """

    name: str
    email: str
    password_hash: str
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class LoginResult:
    """Successful login: the bearer token and the account it is bound to."""

    account_id: int
    token: str
    expires_in: int  # seconds
