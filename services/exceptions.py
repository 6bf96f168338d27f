"""Domain exceptions for tokens, sessions and transfer transactions."""


class TokenError(Exception):
    """Base class for token errors."""


class InvalidTokenError(TokenError):
    """Raised when a token is malformed, forged or signed with another algorithm."""

    def __init__(self, message: str = "token is invalid") -> None:
        super().__init__(message)


class ExpiredTokenError(TokenError):
    """Raised when a correctly signed token is past its expiry."""

    def __init__(self, message: str = "token has expired") -> None:
        super().__init__(message)


class TokenCreationError(TokenError):
    """Raised when signing a new token fails."""


class InvalidKeySizeError(ValueError):
    """Raised when the signing secret is too short."""


class InvalidCredentialsError(Exception):
    """Raised when a username/password pair does not match."""


class SessionError(Exception):
    """Base class for refresh session errors."""


class SessionNotFoundError(SessionError):
    pass


class SessionBlockedError(SessionError):
    pass


class SessionUserMismatchError(SessionError):
    pass


class SessionTokenMismatchError(SessionError):
    pass


class SessionExpiredError(SessionError):
    pass


class TransferTxError(Exception):
    """Raised when the transfer transaction fails. ``step`` names the failing write."""

    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"{step}: {cause}")
        self.step = step
        self.cause = cause


class TransferCancelledError(TransferTxError):
    """Raised when the caller cancels or the deadline passes mid-transaction."""

    def __init__(self, step: str, reason: str = "transfer cancelled") -> None:
        super().__init__(step, RuntimeError(reason))


class RollbackError(TransferTxError):
    """Raised when the rollback after a failed step fails as well."""

    def __init__(self, original: BaseException, rollback_error: BaseException) -> None:
        step = original.step if isinstance(original, TransferTxError) else "transaction"
        super().__init__(step, original)
        self.original = original
        self.rollback_error = rollback_error

    def __str__(self) -> str:
        return f"tx err: {self.original}, rb err: {self.rollback_error}"
