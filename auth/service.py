"""
auth/service.py -- login() and authorize(): the two entry points the API uses.

Authenticator composes three collaborators handed to it at startup:
  - an AccountLookup (AccountStore in production, a dict-backed fake in tests)
  - a PasswordHasher
  - a TokenService

Failure policy:
  login()     -> InvalidCredentials for unknown email AND wrong password.
                 Both paths run exactly one bcrypt verification [C1], so
                 neither the error shape nor the response time tells an
                 attacker which emails are registered.
  authorize() -> Unauthorized for every token problem. The precise reason
                 (missing / malformed / bad_signature / expired) is logged and
                 kept on the exception, never sent to the client. There is no
                 degraded-trust fallback: no token, no account id.

Layer rule: no imports from api/ or ledger/.
"""

from __future__ import annotations

import logging
from typing import Protocol

from auth.errors import InvalidCredentials, TokenInvalid, Unauthorized
from auth.models import Account, LoginResult
from auth.passwords import PasswordHasher
from auth.tokens import TokenService

logger = logging.getLogger("ledgerapi.auth")

_BEARER_PREFIX = "bearer "


class AccountLookup(Protocol):
    def get_by_email(self, email: str) -> Account | None: ...


def bearer_token(authorization: str | None) -> str | None:
    """Extract the credential from an "Authorization: Bearer <token>" header value.

    The scheme is case-insensitive (RFC 7235). Returns None when the header is
    absent, uses another scheme, or carries an empty credential.
    """
    if not authorization:
        return None
    if authorization[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    token = authorization[len(_BEARER_PREFIX) :].strip()
    return token or None


class Authenticator:
    def __init__(self, accounts: AccountLookup, hasher: PasswordHasher, tokens: TokenService) -> None:
        self.accounts = accounts
        self.hasher = hasher
        self.tokens = tokens

    def login(self, email: str, password: str) -> LoginResult:
        """Verify email + password and issue a token bound to the account.

        CPU-bound (bcrypt). Call from a sync route handler so FastAPI runs it
        in the threadpool.
        """
        account = self.accounts.get_by_email(email)
        if account is None or account.id is None:
            # Equalize timing -- do NOT return early before running bcrypt [C1]
            self.hasher.verify_dummy(password)
            logger.info("Login rejected: unknown account")
            raise InvalidCredentials()
        if not self.hasher.verify(password, account.password_hash):
            logger.info("Login rejected: wrong password for account_id=%d", account.id)
            raise InvalidCredentials()

        token = self.tokens.issue(account.id)
        logger.info("Login succeeded for account_id=%d", account.id)
        return LoginResult(account_id=account.id, token=token, expires_in=self.tokens.ttl_seconds)

    def authorize(self, token: str | None) -> int:
        """Return the account id a presented token is bound to, or raise Unauthorized."""
        if not token:
            raise Unauthorized("missing")
        try:
            return self.tokens.validate(token)
        except TokenInvalid as exc:
            logger.info("Token rejected: %s", exc.reason)
            raise Unauthorized(exc.reason) from exc
