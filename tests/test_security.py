"""Unit tests for clubapi.core.security: token codec, password and reset-token hashing."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import jwt

from clubapi.core.security import (
    MalformedTokenError,
    TokenCodec,
    TokenExpiredError,
    TokenSignatureError,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from clubapi.schemas.auth import Role

SECRET = "test-secret-for-unit-tests"
T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


class _Clock:
    """Settable clock for deterministic expiry checks."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _codec(clock: _Clock | None = None, ttl: timedelta = timedelta(days=7)) -> TokenCodec:
    return TokenCodec(SECRET, ttl=ttl, clock=clock or _Clock(T0))


def _tamper_signature(token: str) -> str:
    """Replace the first signature character; later characters may only carry padding bits."""
    header, payload, signature = token.split(".")
    replacement = "A" if signature[0] != "A" else "B"
    return ".".join([header, payload, replacement + signature[1:]])


class TestIssueVerifyRoundTrip(unittest.TestCase):
    """verify(issue(subject, role)) returns the same pair before expiry."""

    def test_subject_and_role_survive(self) -> None:
        codec = _codec()
        for subject in ("1", "42", "65f1c0ffee", "user-with-dashes"):
            for role in Role:
                with self.subTest(subject=subject, role=role):
                    claims = codec.verify(codec.issue(subject, role))
                    self.assertEqual(claims.subject_id, subject)
                    self.assertIs(claims.role, role)

    def test_integer_subject_is_stringified(self) -> None:
        codec = _codec()
        claims = codec.verify(codec.issue(7, "member"))
        self.assertEqual(claims.subject_id, "7")
        self.assertIs(claims.role, Role.MEMBER)

    def test_expiry_is_issue_time_plus_ttl(self) -> None:
        clock = _Clock(T0.replace(microsecond=654321))
        codec = _codec(clock, ttl=timedelta(minutes=90))
        claims = codec.verify(codec.issue("1", Role.ADMIN))
        self.assertEqual(claims.issued_at, T0)
        self.assertEqual(claims.expires_at - claims.issued_at, timedelta(minutes=90))

    def test_default_ttl_is_seven_days(self) -> None:
        codec = TokenCodec(SECRET, clock=_Clock(T0))
        claims = codec.verify(codec.issue("1", Role.MEMBER))
        self.assertEqual(claims.expires_at, T0 + timedelta(days=7))

    def test_unknown_role_cannot_be_issued(self) -> None:
        with self.assertRaises(ValueError):
            _codec().issue("1", "superuser")

    def test_blank_subject_cannot_be_issued(self) -> None:
        with self.assertRaises(ValueError):
            _codec().issue("  ", Role.MEMBER)


class TestExpiry(unittest.TestCase):
    """Tokens stop verifying once the TTL has elapsed."""

    def test_valid_just_before_expiry(self) -> None:
        clock = _Clock(T0)
        codec = _codec(clock, ttl=timedelta(hours=1))
        token = codec.issue("1", Role.MEMBER)
        clock.now = T0 + timedelta(minutes=59, seconds=59)
        self.assertEqual(codec.verify(token).subject_id, "1")

    def test_expired_after_ttl(self) -> None:
        clock = _Clock(T0)
        codec = _codec(clock, ttl=timedelta(hours=1))
        token = codec.issue("1", Role.MEMBER)
        clock.now = T0 + timedelta(hours=1)
        with self.assertRaises(TokenExpiredError) as ctx:
            codec.verify(token)
        self.assertEqual(ctx.exception.reason, "expired")

    def test_expired_with_real_clock(self) -> None:
        issuer = _codec(_Clock(datetime.now(UTC) - timedelta(days=8)))
        verifier = TokenCodec(SECRET)
        with self.assertRaises(TokenExpiredError):
            verifier.verify(issuer.issue("1", Role.ADMIN))


class TestSignature(unittest.TestCase):
    """Altered or foreign signatures are rejected as invalid_signature."""

    def test_altered_signature(self) -> None:
        codec = _codec()
        token = _tamper_signature(codec.issue("1", Role.MEMBER))
        with self.assertRaises(TokenSignatureError) as ctx:
            codec.verify(token)
        self.assertEqual(ctx.exception.reason, "invalid_signature")

    def test_other_secret(self) -> None:
        other = TokenCodec("another-secret", clock=_Clock(T0))
        with self.assertRaises(TokenSignatureError):
            _codec().verify(other.issue("1", Role.ADMIN))

    def test_altered_payload_breaks_signature(self) -> None:
        codec = _codec()
        member_token = codec.issue("1", Role.MEMBER)
        forged_payload = jwt.encode(
            {"sub": "1", "role": "admin", "iat": T0, "exp": T0 + timedelta(days=7)},
            "attacker",
            algorithm="HS256",
        ).split(".")[1]
        header, _, signature = member_token.split(".")
        with self.assertRaises(TokenSignatureError):
            codec.verify(".".join([header, forged_payload, signature]))

    def test_signature_checked_before_expiry(self) -> None:
        clock = _Clock(T0)
        codec = _codec(clock, ttl=timedelta(minutes=1))
        token = _tamper_signature(codec.issue("1", Role.MEMBER))
        clock.now = T0 + timedelta(days=1)
        with self.assertRaises(TokenSignatureError):
            codec.verify(token)


class TestMalformed(unittest.TestCase):
    """Tokens that do not decode or lack required claims are malformed."""

    def _signed(self, payload: dict) -> str:
        return jwt.encode(payload, SECRET, algorithm="HS256")

    def test_garbage_strings(self) -> None:
        codec = _codec()
        for token in ("", "not-a-token", "a.b.c", "a.b"):
            with self.subTest(token=token):
                with self.assertRaises(MalformedTokenError) as ctx:
                    codec.verify(token)
                self.assertEqual(ctx.exception.reason, "malformed")

    def test_missing_role_claim(self) -> None:
        token = self._signed({"sub": "1", "iat": T0, "exp": T0 + timedelta(hours=1)})
        with self.assertRaises(MalformedTokenError):
            _codec().verify(token)

    def test_missing_expiry_claim(self) -> None:
        token = self._signed({"sub": "1", "role": "member", "iat": T0})
        with self.assertRaises(MalformedTokenError):
            _codec().verify(token)

    def test_role_outside_enum(self) -> None:
        token = self._signed(
            {"sub": "1", "role": "owner", "iat": T0, "exp": T0 + timedelta(hours=1)}
        )
        with self.assertRaises(MalformedTokenError):
            _codec().verify(token)

    def test_non_numeric_timestamps(self) -> None:
        token = self._signed({"sub": "1", "role": "member", "iat": "yesterday", "exp": "tomorrow"})
        with self.assertRaises(MalformedTokenError):
            _codec().verify(token)

    def test_expiry_before_issue(self) -> None:
        token = self._signed({"sub": "1", "role": "member", "iat": T0, "exp": T0 - timedelta(hours=1)})
        with self.assertRaises(MalformedTokenError):
            _codec().verify(token)

    def test_unsigned_token_rejected(self) -> None:
        token = jwt.encode(
            {"sub": "1", "role": "admin", "iat": T0, "exp": T0 + timedelta(hours=1)},
            None,
            algorithm="none",
        )
        with self.assertRaises(MalformedTokenError):
            _codec().verify(token)


class TestConstructor(unittest.TestCase):
    def test_empty_secret_rejected(self) -> None:
        with self.assertRaises(ValueError):
            TokenCodec("")

    def test_non_positive_ttl_rejected(self) -> None:
        with self.assertRaises(ValueError):
            TokenCodec(SECRET, ttl=timedelta(0))


@patch("clubapi.core.security.BCRYPT_ROUNDS", 4)
class TestPasswordHashing(unittest.TestCase):
    """bcrypt hashes never equal the plaintext and verify only the right password."""

    def test_hash_differs_from_plaintext(self) -> None:
        hashed = hash_password("correct horse 1")
        self.assertNotEqual(hashed, "correct horse 1")
        self.assertTrue(verify_password("correct horse 1", hashed))
        self.assertFalse(verify_password("correct horse 2", hashed))

    def test_same_password_hashes_differently(self) -> None:
        self.assertNotEqual(hash_password("password1"), hash_password("password1"))

    def test_corrupt_hash_returns_false(self) -> None:
        self.assertFalse(verify_password("password1", "not-a-bcrypt-hash"))


class TestResetTokens(unittest.TestCase):
    def test_generated_digest_matches_raw(self) -> None:
        raw, digest = generate_reset_token()
        self.assertNotEqual(raw, digest)
        self.assertEqual(hash_reset_token(raw), digest)
        self.assertEqual(len(digest), 64)

    def test_tokens_are_unique(self) -> None:
        self.assertNotEqual(generate_reset_token()[0], generate_reset_token()[0])


if __name__ == "__main__":
    unittest.main()
