"""Login and access token renewal backed by refresh sessions."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Tuple

import bcrypt

import schemas
from logging_config import get_logger, log_action
from services.exceptions import (
    InvalidCredentialsError,
    SessionBlockedError,
    SessionExpiredError,
    SessionNotFoundError,
    SessionTokenMismatchError,
    SessionUserMismatchError,
)
from services.store import Store
from services.token_maker import JWTMaker, Payload

logger = get_logger("bank.tokens")


def hash_password(password: str) -> str:
    """Hash plain text password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain text password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timezone-aware columns back as naive UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class LoginResult:
    session: schemas.Session
    user: schemas.User
    access_token: str
    access_payload: Payload
    refresh_token: str
    refresh_payload: Payload


class TokenService:
    """Issues token pairs on login and renews access tokens from refresh sessions."""

    def __init__(
        self,
        token_maker: JWTMaker,
        store: Store,
        access_token_duration: timedelta,
        refresh_token_duration: timedelta,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.token_maker = token_maker
        self.store = store
        self.access_token_duration = access_token_duration
        self.refresh_token_duration = refresh_token_duration
        self.clock = clock

    def login(self, username: str, password: str, user_agent: str = "", client_ip: str = "") -> LoginResult:
        """Check credentials, then persist a refresh session for a new token pair."""
        with self.store.queries() as q:
            user = q.get_user(username)
            if user is None or not verify_password(password, user.hashed_password):
                log_action(logger, "info", "login rejected", username=username, action="login")
                raise InvalidCredentialsError("incorrect username or password")

            access_token, access_payload = self.token_maker.create_token(
                user.username, self.access_token_duration
            )
            refresh_token, refresh_payload = self.token_maker.create_token(
                user.username, self.refresh_token_duration
            )

            session = q.create_session(
                id=refresh_payload.id,
                username=user.username,
                refresh_token=refresh_token,
                user_agent=user_agent,
                client_ip=client_ip,
                is_blocked=False,
                expires_at=refresh_payload.expired_at,
            )

        log_action(logger, "info", "login succeeded", username=username, action="login",
                   resource=f"session:{session.id}")
        return LoginResult(
            session=session,
            user=user,
            access_token=access_token,
            access_payload=access_payload,
            refresh_token=refresh_token,
            refresh_payload=refresh_payload,
        )

    def renew_access_token(self, refresh_token: str) -> Tuple[str, Payload]:
        """Exchange a refresh token for a new access token.

        The token is verified before any storage access, so forged or expired
        tokens never reach the database. The session expiry is checked on its
        own so a session can be expired ahead of its token.
        """
        refresh_payload = self.token_maker.verify_token(refresh_token)

        session = self.store.get_session(refresh_payload.id)
        if session is None:
            self._reject(refresh_payload, "session not found")
            raise SessionNotFoundError("session not found")

        if session.is_blocked:
            self._reject(refresh_payload, "blocked session")
            raise SessionBlockedError("blocked session")

        if session.username != refresh_payload.username:
            self._reject(refresh_payload, "incorrect session user")
            raise SessionUserMismatchError("incorrect session user")

        if session.refresh_token != refresh_token:
            self._reject(refresh_payload, "mismatched session token")
            raise SessionTokenMismatchError("mismatched session token")

        if self.clock() > _as_utc(session.expires_at):
            self._reject(refresh_payload, "expired session")
            raise SessionExpiredError("expired session")

        return self.token_maker.create_token(refresh_payload.username, self.access_token_duration)

    @staticmethod
    def _reject(payload: Payload, reason: str) -> None:
        log_action(logger, "warning", f"renewal rejected: {reason}", username=payload.username,
                   action="renew_access_token", resource=f"session:{payload.id}")
