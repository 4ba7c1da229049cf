"""
auth/errors.py -- Exception taxonomy for the authentication core.

InvalidCredentials and Unauthorized are expected outcomes. Route code turns
them into 401 responses; they are never logged as faults.

TokenInvalid and its subclasses carry the precise reason a token was
rejected. They stay inside auth/ -- Authenticator.authorize() converts every
one of them into Unauthorized so the HTTP boundary sees a single shape.

InternalFailure means a primitive (bcrypt, JWT signing) failed or the secret
is unavailable. It is logged with detail server-side and answered with a
generic 500.

Layer rule: no imports from api/ or ledger/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by the auth package."""


class InvalidCredentials(AuthError):
    """Wrong password or unknown account. The two cases are deliberately identical."""

    def __init__(self) -> None:
        super().__init__("Invalid email or password.")


class TokenInvalid(AuthError):
    """A presented token was rejected. Subclasses name the reason."""

    reason = "invalid"


class TokenMalformed(TokenInvalid):
    reason = "malformed"


class TokenBadSignature(TokenInvalid):
    reason = "bad_signature"


class TokenExpired(TokenInvalid):
    reason = "expired"


class Unauthorized(AuthError):
    """Boundary outcome for any token failure (missing, malformed, forged, expired).

    reason is kept for logs and tests only; it must not be sent to clients.
    """

    def __init__(self, reason: str) -> None:
        super().__init__("Authentication required.")
        self.reason = reason


class InternalFailure(AuthError):
    """A hashing or signing primitive failed. Never expose str(exc) to clients."""
