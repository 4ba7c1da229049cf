"""
auth/passwords.py -- bcrypt password hashing (the only code that sees plaintext).

Security design decisions:
  bcrypt directly, no passlib wrapper. passlib's wrap-bug detection builds a
  password longer than 72 bytes, which current bcrypt releases reject. Direct
  usage is simpler and has no compatibility shim.

  The hash string is self-describing ($2b$<cost>$<22-char salt><31-char
  digest>), so verify() needs nothing but the stored value. Changing the work
  factor only affects new hashes; old ones keep verifying with their own cost.

  verify() fails closed. A malformed stored hash returns False instead of
  raising, so a corrupt row can never be mistaken for a match.

  bcrypt only looks at the first 72 bytes of input. hash() refuses longer
  passwords rather than silently truncating them; the API models enforce the
  same limit before a request reaches this module.

Layer rule: stdlib + bcrypt only. No imports from api/ or ledger/.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.errors import InternalFailure

logger = logging.getLogger("ledgerapi.auth")

DEFAULT_ROUNDS = 10
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted, deliberately slow one-way hashing of account passwords.

    Stateless after construction and safe to share between threads. Calls are
    CPU-bound: run them from sync route handlers (FastAPI's threadpool), never
    directly on the event loop.

    Usage:
        hasher = PasswordHasher(rounds=10)
        stored = hasher.hash("correct horse")
        hasher.verify("correct horse", stored)  # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31.")
        self.rounds = rounds
        # Computed up front so the first login attempt is not measurably slower
        # than later ones.
        self._dummy_hash = self.hash("ledgerapi_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a fresh bcrypt hash of plain. Two calls never return the same string."""
        if not plain:
            raise ValueError("Password must not be empty.")
        encoded = plain.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        try:
            return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("ascii")
        except (ValueError, TypeError) as exc:
            raise InternalFailure("bcrypt hashing failed") from exc

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Return True iff plain matches hashed. Any malformed input returns False."""
        if not plain or not hashed:
            return False
        encoded = plain.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except (ValueError, TypeError):
            logger.debug("Stored password hash could not be parsed; rejecting")
            return False

    def verify_dummy(self, plain: str) -> None:
        """Burn one bcrypt verification against a throwaway hash [C1].

        Called when the account does not exist so the response takes as long
        as a wrong-password check and does not reveal which emails exist.
        """
        self.verify(plain or "x", self._dummy_hash)
