"""
auth/tokens.py -- Stateless bearer tokens (JWT, HS256) bound to one account.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the process SECRET_KEY
       and carry exactly one identity claim. The payload shape is fixed:

           {"sub": "<account id>", "account_id": <int>, "iat": <int>, "exp": <int>}

       sub duplicates account_id as a string so generic JWT tooling can read
       the subject; account_id is the claim this service trusts.

  Validation reports WHY a token failed (TokenMalformed / TokenBadSignature /
       TokenExpired). The HTTP layer collapses all three into one 401, but
       logs and tests keep the distinction.

  Order of checks matters:
       1. structure -- three base64url segments, header is a JSON object.
          Failure here is TokenMalformed.
       2. signature -- verified by jose before the payload is trusted. Any
          tampering with header or payload lands here as TokenBadSignature,
          never as a different account id.
       3. claims   -- signed payload must contain an integer account_id and
          an integer exp. Missing claims are TokenMalformed.
       4. expiry   -- checked here, not by jose, because a token is expired
          AT its exp instant (jose only rejects strictly after exp).

  No revocation. A token stays valid until exp; there is no server-side state.

  SECRET_KEY is passed into TokenService by the application lifespan. An
       empty secret is a constructor error, so a running process always has
       a usable signer.

Layer rule: stdlib + python-jose only. No imports from api/ or ledger/.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError
from jose.utils import base64url_decode

from auth.errors import InternalFailure, TokenBadSignature, TokenExpired, TokenMalformed

logger = logging.getLogger("ledgerapi.auth")

ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 3600

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issue and validate signed, time-limited tokens.

    Stateless after construction; one instance is shared by every request.

    Usage:
        tokens = TokenService(secret_key, ttl_seconds=3600)
        token = tokens.issue(42)
        tokens.validate(token)  # 42

    clock is injectable so tests can move time forward without sleeping.
    """

    def __init__(
        self,
        secret_key: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a non-empty secret key.")
        if ttl_seconds <= 0:
            raise ValueError("Token lifetime must be positive.")
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(self, account_id: int, ttl_seconds: int | None = None) -> str:
        """Return a signed token for account_id expiring ttl_seconds from now.

        Args:
            account_id:  Primary key of the account. Every token carries exactly one.
            ttl_seconds: Lifetime override. Defaults to the service-wide ttl.
        """
        duration = ttl_seconds if ttl_seconds is not None else self.ttl_seconds
        if duration <= 0:
            raise ValueError("Token lifetime must be positive.")
        now = self._clock()
        expire = now + timedelta(seconds=duration)
        payload = {
            "sub": str(account_id),
            "account_id": account_id,
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
        }
        try:
            return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)
        except JWTError as exc:
            raise InternalFailure("JWT signing failed") from exc

    def validate(self, token: str) -> int:
        """Return the account id a token was issued for.

        Raises:
            TokenMalformed:    token cannot be parsed, or its claims are unusable.
            TokenBadSignature: signature does not match this service's secret.
            TokenExpired:      the current instant is at or past exp.
        """
        _check_structure(token)

        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTClaimsError as exc:
            raise TokenMalformed(str(exc)) from exc
        except JWTError as exc:
            raise TokenBadSignature(str(exc)) from exc

        account_id = claims.get("account_id")
        exp = claims.get("exp")
        # bool is an int subclass; a signed True is still not an account id.
        if not isinstance(account_id, int) or isinstance(account_id, bool):
            raise TokenMalformed("account_id claim missing or not an integer")
        if not isinstance(exp, int) or isinstance(exp, bool):
            raise TokenMalformed("exp claim missing or not an integer")

        if self._clock().timestamp() >= exp:
            raise TokenExpired("token expired")
        return account_id


def _check_structure(token: str) -> None:
    """Raise TokenMalformed unless token looks like header.payload.signature.

    Only the header is JSON-decoded here. The payload is left for jose, which
    checks the signature before interpreting it -- so a flipped payload byte
    surfaces as a bad signature rather than a parse error.
    """
    if not isinstance(token, str) or not token:
        raise TokenMalformed("empty token")
    parts = token.split(".")
    if len(parts) != 3 or not all(_SEGMENT_RE.match(p) for p in parts):
        raise TokenMalformed("token is not three base64url segments")
    try:
        header = json.loads(base64url_decode(parts[0].encode("ascii")))
    except (ValueError, TypeError) as exc:
        raise TokenMalformed("token header is not valid JSON") from exc
    if not isinstance(header, dict):
        raise TokenMalformed("token header is not a JSON object")
