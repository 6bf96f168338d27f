import base64
import pytest
from datetime import datetime, timedelta, timezone
from jose import jwt

import random_data
from services.exceptions import (
    ExpiredTokenError,
    InvalidKeySizeError,
    InvalidTokenError,
    TokenCreationError,
)
from services.token_maker import JWTMaker, Payload


class TestJWTMaker:
    """Test token creation and verification."""

    def test_create_and_verify_token(self, token_maker):
        """A fresh token verifies and keeps its claims."""
        username = random_data.random_owner()
        duration = timedelta(minutes=1)
        before = datetime.now(timezone.utc).replace(microsecond=0)

        token, payload = token_maker.create_token(username, duration)
        assert token

        verified = token_maker.verify_token(token)
        assert verified == payload
        assert verified.username == username
        assert verified.id
        assert verified.expired_at == verified.issued_at + duration
        assert verified.issued_at >= before
        assert verified.issued_at <= datetime.now(timezone.utc)

    def test_token_ids_are_unique(self, token_maker):
        """Every token gets its own random id."""
        _, first = token_maker.create_token("alice", timedelta(minutes=1))
        _, second = token_maker.create_token("alice", timedelta(minutes=1))
        assert first.id != second.id

    def test_expired_token(self, token_maker):
        """A token past its expiry fails with the expired condition."""
        token, _ = token_maker.create_token("alice", -timedelta(minutes=1))

        with pytest.raises(ExpiredTokenError):
            token_maker.verify_token(token)

    def test_payload_expiry_boundary(self):
        """Payload validity flips right after the expiry instant."""
        issued = datetime(2024, 1, 1, tzinfo=timezone.utc)
        payload = Payload.new("alice", timedelta(minutes=5), now=issued)

        payload.valid(now=issued + timedelta(minutes=5) - timedelta(seconds=1))
        with pytest.raises(ExpiredTokenError):
            payload.valid(now=issued + timedelta(minutes=5, seconds=1))

    def test_verify_token_expiry_boundary(self):
        """A token verifies up to its expiry and fails just after it."""
        now = [datetime(2024, 1, 1, tzinfo=timezone.utc)]
        maker = JWTMaker("a" * 32, clock=lambda: now[0])
        token, payload = maker.create_token("alice", timedelta(seconds=2))

        assert maker.verify_token(token) == payload

        now[0] = payload.expired_at - timedelta(milliseconds=1)
        assert maker.verify_token(token) == payload

        now[0] = payload.expired_at + timedelta(seconds=1)
        with pytest.raises(ExpiredTokenError):
            maker.verify_token(token)

    def test_invalid_signature(self, token_maker):
        """A token signed with another secret is rejected."""
        other_maker = JWTMaker("b" * 32)
        token, _ = other_maker.create_token("alice", timedelta(minutes=1))

        with pytest.raises(InvalidTokenError):
            token_maker.verify_token(token)

    def test_unexpected_algorithm(self, token_maker):
        """A token signed with a different algorithm is rejected."""
        _, payload = token_maker.create_token("alice", timedelta(minutes=1))
        token = jwt.encode(payload.to_claims(), token_maker.secret_key, algorithm="HS512")

        with pytest.raises(InvalidTokenError):
            token_maker.verify_token(token)

    def test_none_algorithm(self, token_maker):
        """An unsigned token is rejected."""
        token, _ = token_maker.create_token("alice", timedelta(minutes=1))
        header = base64.urlsafe_b64encode(b'{"alg":"none","typ":"JWT"}').rstrip(b"=").decode()
        unsigned = f"{header}.{token.split('.')[1]}."

        with pytest.raises(InvalidTokenError):
            token_maker.verify_token(unsigned)

    def test_malformed_token(self, token_maker):
        """Garbage input is an invalid token, not a crash."""
        with pytest.raises(InvalidTokenError):
            token_maker.verify_token("not-a-token")

    def test_missing_claims(self, token_maker):
        """A correctly signed token without a subject is invalid."""
        token = jwt.encode({"exp": 9999999999, "iat": 0, "jti": "x"}, token_maker.secret_key, algorithm="HS256")

        with pytest.raises(InvalidTokenError):
            token_maker.verify_token(token)

    def test_short_secret_key(self):
        """The maker refuses secrets below the minimum size."""
        with pytest.raises(InvalidKeySizeError):
            JWTMaker("a" * 31)

    def test_signing_failure(self):
        """An unusable signing algorithm surfaces as a creation error."""
        maker = JWTMaker("a" * 32, algorithm="XYZ999")

        with pytest.raises(TokenCreationError):
            maker.create_token("alice", timedelta(minutes=1))
