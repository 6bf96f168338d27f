"""JWT token maker: creates and verifies signed, expiring identity tokens."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from jose import jwt
from jose.exceptions import JOSEError

from services.exceptions import (
    ExpiredTokenError,
    InvalidKeySizeError,
    InvalidTokenError,
    TokenCreationError,
)

MIN_SECRET_KEY_SIZE = 32


@dataclass(frozen=True)
class Payload:
    """Claims carried by one token."""

    id: str
    username: str
    issued_at: datetime
    expired_at: datetime

    @classmethod
    def new(cls, username: str, duration: timedelta, now: Optional[datetime] = None) -> "Payload":
        # JWT NumericDate has whole-second precision
        issued_at = (now or datetime.now(timezone.utc)).replace(microsecond=0)
        return cls(
            id=str(uuid.uuid4()),
            username=username,
            issued_at=issued_at,
            expired_at=issued_at + duration,
        )

    def valid(self, now: Optional[datetime] = None) -> None:
        if (now or datetime.now(timezone.utc)) > self.expired_at:
            raise ExpiredTokenError()

    def to_claims(self) -> dict:
        return {
            "jti": self.id,
            "sub": self.username,
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expired_at.timestamp()),
        }

    @classmethod
    def from_claims(cls, claims: dict) -> "Payload":
        try:
            return cls(
                id=str(claims["jti"]),
                username=str(claims["sub"]),
                issued_at=datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc),
                expired_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTokenError() from exc


class JWTMaker:
    """Symmetric-key JWT maker.

    Verification is self-contained: it checks the signature, the algorithm
    named in the header and the expiry without touching storage. Both
    issuing and expiry read ``clock``.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        if len(secret_key) < MIN_SECRET_KEY_SIZE:
            raise InvalidKeySizeError(
                f"invalid key size: must be at least {MIN_SECRET_KEY_SIZE} characters"
            )
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.clock = clock

    def create_token(self, username: str, duration: timedelta) -> Tuple[str, Payload]:
        """Sign a new token for ``username`` that expires after ``duration``."""
        payload = Payload.new(username, duration, now=self.clock())
        try:
            token = jwt.encode(payload.to_claims(), self.secret_key, algorithm=self.algorithm)
        except JOSEError as exc:
            raise TokenCreationError(f"cannot create token: {exc}") from exc
        return token, payload

    def verify_token(self, token: str) -> Payload:
        """Return the payload of a valid token.

        Raises:
            ExpiredTokenError: signature is valid but the token has expired
            InvalidTokenError: anything else
        """
        try:
            # expiry is checked below against the maker clock
            claims = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JOSEError as exc:
            raise InvalidTokenError() from exc

        payload = Payload.from_claims(claims)
        payload.valid(now=self.clock())
        return payload
