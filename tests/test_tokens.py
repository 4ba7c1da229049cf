"""Unit tests for auth/tokens.py -- issuing and validating bearer tokens.

Time is controlled through TokenService's injectable clock, so expiry tests
are exact and never sleep.

Coverage:
  - issue -> validate returns the same account id (and never another one)
  - canonical payload shape
  - expiry at and after the exp instant
  - tampering (payload, header, signature, wrong secret) -> TokenBadSignature
  - garbage input -> TokenMalformed, never an unhandled exception
  - signed tokens with missing/invalid claims -> TokenMalformed
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.errors import InternalFailure, TokenBadSignature, TokenExpired, TokenInvalid, TokenMalformed
from auth.tokens import ALGORITHM, TokenService

SECRET = "k" * 48
T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture
def tokens(clock) -> TokenService:
    return TokenService(SECRET, ttl_seconds=3600, clock=clock)


def _flip_char(segment: str, index: int) -> str:
    """Replace one base64url character with a different base64url character."""
    original = segment[index]
    replacement = "A" if original != "A" else "B"
    return segment[:index] + replacement + segment[index + 1 :]


# ---------------------------------------------------------------------------
# Issue / validate
# ---------------------------------------------------------------------------


class TestIssueAndValidate:
    def test_round_trip_returns_account_id(self, tokens):
        assert tokens.validate(tokens.issue(42)) == 42

    def test_tokens_for_different_accounts_never_cross(self, tokens):
        token_a = tokens.issue(1)
        token_b = tokens.issue(2)
        assert token_a != token_b
        assert tokens.validate(token_a) == 1
        assert tokens.validate(token_b) == 2

    def test_canonical_payload_shape(self, tokens):
        claims = jwt.get_unverified_claims(tokens.issue(7))
        assert claims == {
            "sub": "7",
            "account_id": 7,
            "iat": int(T0.timestamp()),
            "exp": int(T0.timestamp()) + 3600,
        }

    def test_header_names_hs256(self, tokens):
        assert jwt.get_unverified_header(tokens.issue(7))["alg"] == ALGORITHM == "HS256"

    def test_issue_at_different_instants_yields_different_tokens(self, tokens, clock):
        first = tokens.issue(5)
        clock.advance(1)
        second = tokens.issue(5)
        assert first != second
        assert tokens.validate(first) == tokens.validate(second) == 5

    def test_ttl_override(self, tokens):
        claims = jwt.get_unverified_claims(tokens.issue(3, ttl_seconds=60))
        assert claims["exp"] - claims["iat"] == 60

    def test_default_ttl_is_one_hour(self):
        assert TokenService(SECRET).ttl_seconds == 3600

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_non_positive_ttl_rejected(self, tokens, ttl):
        with pytest.raises(ValueError):
            tokens.issue(1, ttl_seconds=ttl)

    def test_empty_secret_prevents_construction(self):
        with pytest.raises(ValueError):
            TokenService("")

    def test_signing_failure_becomes_internal_failure(self, tokens, monkeypatch):
        def broken_encode(*args, **kwargs):
            raise jwt.JWTError("signing backend unavailable")

        monkeypatch.setattr(jwt, "encode", broken_encode)
        with pytest.raises(InternalFailure):
            tokens.issue(1)


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


class TestExpiry:
    def test_valid_just_before_expiry(self, tokens, clock):
        token = tokens.issue(9)
        clock.advance(3599)
        assert tokens.validate(token) == 9

    def test_expired_exactly_at_exp(self, tokens, clock):
        token = tokens.issue(9)
        clock.advance(3600)
        with pytest.raises(TokenExpired):
            tokens.validate(token)

    def test_expired_after_exp(self, tokens, clock):
        token = tokens.issue(9)
        clock.advance(86400)
        with pytest.raises(TokenExpired) as exc_info:
            tokens.validate(token)
        assert exc_info.value.reason == "expired"

    def test_expired_token_is_rejected_by_any_service_instance(self, clock):
        """Expiry lives in the token, not in the issuing instance."""
        token = TokenService(SECRET, ttl_seconds=10, clock=clock).issue(1)
        clock.advance(10)
        with pytest.raises(TokenExpired):
            TokenService(SECRET, clock=clock).validate(token)


# ---------------------------------------------------------------------------
# Tampering
# ---------------------------------------------------------------------------


class TestTampering:
    def test_flipped_payload_character_is_bad_signature(self, tokens):
        header, payload, signature = tokens.issue(1).split(".")
        tampered = ".".join([header, _flip_char(payload, len(payload) // 2), signature])
        with pytest.raises(TokenBadSignature):
            tokens.validate(tampered)

    def test_payload_swapped_to_other_account_is_bad_signature(self, tokens):
        """Re-encode the payload with another account id but keep the old signature."""
        header, _payload, signature = tokens.issue(1).split(".")
        forged_payload = jwt.encode({"account_id": 2, "exp": 2**31}, "irrelevant").split(".")[1]
        with pytest.raises(TokenBadSignature):
            tokens.validate(".".join([header, forged_payload, signature]))

    def test_flipped_signature_character_is_bad_signature(self, tokens):
        header, payload, signature = tokens.issue(1).split(".")
        tampered = ".".join([header, payload, _flip_char(signature, 0)])
        with pytest.raises(TokenBadSignature):
            tokens.validate(tampered)

    def test_token_signed_with_other_secret_is_bad_signature(self, tokens, clock):
        foreign = TokenService("z" * 48, clock=clock).issue(1)
        with pytest.raises(TokenBadSignature):
            tokens.validate(foreign)

    def test_other_algorithm_is_bad_signature(self, tokens):
        token = jwt.encode({"account_id": 1, "exp": 2**31}, SECRET, algorithm="HS512")
        with pytest.raises(TokenBadSignature):
            tokens.validate(token)

    def test_unsigned_alg_none_token_is_rejected(self, tokens):
        header = "eyJhbGciOiJub25lIiwidHlwIjoiSldUIn0"  # {"alg":"none","typ":"JWT"}
        payload = jwt.encode({"account_id": 1, "exp": 2**31}, SECRET).split(".")[1]
        with pytest.raises(TokenInvalid):
            tokens.validate(f"{header}.{payload}.")

    def test_tampering_never_returns_an_account_id(self, tokens):
        token = tokens.issue(1)
        header, payload, signature = token.split(".")
        for index in range(len(payload)):
            tampered = ".".join([header, _flip_char(payload, index), signature])
            if tampered == token:
                continue
            with pytest.raises(TokenInvalid):
                tokens.validate(tampered)


# ---------------------------------------------------------------------------
# Malformed input
# ---------------------------------------------------------------------------


class TestMalformed:
    @pytest.mark.parametrize(
        "token",
        [
            "",
            "not-a-token",
            "a.b",
            "a.b.c.d",
            "...",
            "has space.in.it",
            "eyJ!.eyJ.sig",
            "bm90IGpzb24.eyJhIjoxfQ.c2ln",  # header is base64url but not JSON
            "WzFd.eyJhIjoxfQ.c2ln",  # header is JSON but a list, not an object
        ],
    )
    def test_garbage_is_malformed(self, tokens, token):
        with pytest.raises(TokenMalformed) as exc_info:
            tokens.validate(token)
        assert exc_info.value.reason == "malformed"

    def test_non_string_is_malformed(self, tokens):
        with pytest.raises(TokenMalformed):
            tokens.validate(None)  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        "claims",
        [
            {"exp": 2**31},  # no account_id
            {"account_id": "1", "exp": 2**31},  # account_id not an int
            {"account_id": True, "exp": 2**31},  # bool is not an id
            {"account_id": 1},  # no exp
            {"account_id": 1, "exp": "tomorrow"},  # exp not an int
        ],
    )
    def test_correctly_signed_token_without_usable_claims_is_malformed(self, tokens, claims):
        token = jwt.encode(claims, SECRET, algorithm=ALGORITHM)
        with pytest.raises(TokenMalformed):
            tokens.validate(token)
