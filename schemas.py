from sqlalchemy import (
    CheckConstraint, Column, Integer, BigInteger, String, Boolean, DateTime, ForeignKey,
    UniqueConstraint
)
from sqlalchemy.orm import declarative_base
from pydantic import BaseModel, field_validator
from datetime import date, datetime, timezone

from currencies import is_supported_currency

Base = declarative_base()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    username = Column(String(64), primary_key=True)
    hashed_password = Column(String(128), nullable=False)
    full_name = Column(String(128), nullable=False)
    email = Column(String(128), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("owner", "currency", name="owner_currency_key"),
        CheckConstraint("balance >= 0", name="balance_not_negative"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    owner = Column(String(64), ForeignKey("users.username"), nullable=False, index=True)
    balance = Column(BigInteger, nullable=False, default=0)  # minor units
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class Entry(Base):
    __tablename__ = "entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)  # negative for debit, positive for credit
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class Transfer(Base):
    __tablename__ = "transfers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    from_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    to_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class Session(Base):
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True)  # refresh token payload id
    username = Column(String(64), ForeignKey("users.username"), nullable=False, index=True)
    refresh_token = Column(String(1024), nullable=False)
    user_agent = Column(String(256), nullable=False, default="")
    client_ip = Column(String(64), nullable=False, default="")
    is_blocked = Column(Boolean, nullable=False, default=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)


class UserResponse(BaseModel):
    username: str
    full_name: str
    email: str
    created_at: datetime

    class Config:
        from_attributes = True


class AccountResponse(BaseModel):
    id: int
    owner: str
    balance: int
    currency: str
    created_at: datetime

    class Config:
        from_attributes = True


class EntryResponse(BaseModel):
    id: int
    account_id: int
    amount: int
    created_at: datetime

    class Config:
        from_attributes = True


class TransferResponse(BaseModel):
    id: int
    from_account_id: int
    to_account_id: int
    amount: int
    created_at: datetime

    class Config:
        from_attributes = True


class TransferTxResponse(BaseModel):
    transfer: TransferResponse
    from_account: AccountResponse
    to_account: AccountResponse
    from_entry: EntryResponse
    to_entry: EntryResponse

    class Config:
        from_attributes = True


class TransferRequest(BaseModel):
    from_account_id: int
    to_account_id: int
    amount: int
    currency: str

    @field_validator("currency")
    @classmethod
    def check_currency(cls, value: str) -> str:
        if not is_supported_currency(value):
            raise ValueError(f"unsupported currency {value}")
        return value


class ScheduledTransferRequest(TransferRequest):
    scheduled_date: date

    class Config:
        json_schema_extra = {
            "example": {
                "from_account_id": 1,
                "to_account_id": 2,
                "amount": 500,
                "currency": "USD",
                "scheduled_date": "2025-10-27"
            }
        }


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    session_id: str
    access_token: str
    access_token_expires_at: datetime
    refresh_token: str
    refresh_token_expires_at: datetime
    user: UserResponse


class RenewAccessTokenRequest(BaseModel):
    refresh_token: str


class RenewAccessTokenResponse(BaseModel):
    access_token: str
    access_token_expires_at: datetime
