"""Queries and the transfer transaction engine."""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Tuple, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

import schemas
from db import LOCK_TIMEOUT_OPTION
from logging_config import get_logger, log_action
from services.exceptions import RollbackError, TransferCancelledError, TransferTxError

logger = get_logger("bank.store")

T = TypeVar("T")


class Queries:
    """Read and write helpers bound to one SQLAlchemy session.

    The same class serves plain and transactional use: ``Store.queries``
    binds it to a short-lived session, ``Store.exec_tx`` binds it to the
    session that owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, username: str, hashed_password: str, full_name: str, email: str) -> schemas.User:
        user = schemas.User(
            username=username,
            hashed_password=hashed_password,
            full_name=full_name,
            email=email,
        )
        self.db.add(user)
        self.db.flush()
        return user

    def get_user(self, username: str) -> Optional[schemas.User]:
        return self.db.get(schemas.User, username)

    def create_account(self, owner: str, balance: int, currency: str) -> schemas.Account:
        account = schemas.Account(owner=owner, balance=balance, currency=currency)
        self.db.add(account)
        self.db.flush()
        return account

    def get_account(self, account_id: int) -> Optional[schemas.Account]:
        return self.db.get(schemas.Account, account_id)

    def add_account_balance(self, account_id: int, amount: int) -> schemas.Account:
        """Add ``amount`` to the stored balance and return the updated row.

        The increment happens in the database, so concurrent transfers on the
        same account compose without lost updates.
        """
        stmt = (
            update(schemas.Account)
            .where(schemas.Account.id == account_id)
            .values(balance=schemas.Account.balance + amount)
            .returning(schemas.Account)
        )
        return self.db.execute(stmt).scalars().one()

    def create_transfer(self, from_account_id: int, to_account_id: int, amount: int) -> schemas.Transfer:
        transfer = schemas.Transfer(
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount,
        )
        self.db.add(transfer)
        self.db.flush()
        return transfer

    def create_entry(self, account_id: int, amount: int) -> schemas.Entry:
        entry = schemas.Entry(account_id=account_id, amount=amount)
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_entries(self, account_id: int) -> list:
        stmt = (
            select(schemas.Entry)
            .where(schemas.Entry.account_id == account_id)
            .order_by(schemas.Entry.id)
        )
        return list(self.db.execute(stmt).scalars())

    def list_transfers(self, from_account_id: int, to_account_id: int) -> list:
        stmt = (
            select(schemas.Transfer)
            .where(
                schemas.Transfer.from_account_id == from_account_id,
                schemas.Transfer.to_account_id == to_account_id,
            )
            .order_by(schemas.Transfer.id)
        )
        return list(self.db.execute(stmt).scalars())

    def create_session(
        self,
        id: str,
        username: str,
        refresh_token: str,
        user_agent: str,
        client_ip: str,
        is_blocked: bool,
        expires_at,
    ) -> schemas.Session:
        session = schemas.Session(
            id=id,
            username=username,
            refresh_token=refresh_token,
            user_agent=user_agent,
            client_ip=client_ip,
            is_blocked=is_blocked,
            expires_at=expires_at,
        )
        self.db.add(session)
        self.db.flush()
        return session

    def get_session(self, session_id: str) -> Optional[schemas.Session]:
        return self.db.get(schemas.Session, session_id)


@dataclass
class TransferTxParams:
    from_account_id: int
    to_account_id: int
    amount: int


@dataclass
class TransferTxResult:
    transfer: Optional[schemas.Transfer] = None
    from_account: Optional[schemas.Account] = None
    to_account: Optional[schemas.Account] = None
    from_entry: Optional[schemas.Entry] = None
    to_entry: Optional[schemas.Entry] = None


class _Cancellation:
    """Checks a caller's cancel event and deadline between transaction steps."""

    def __init__(self, cancel: Optional[threading.Event], timeout: Optional[float]):
        self.cancel = cancel
        self.deadline = time.monotonic() + timeout if timeout is not None else None

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def check(self, step: str) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise TransferCancelledError(step, "transfer cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise TransferCancelledError(step, "transfer deadline exceeded")

    @contextmanager
    def lock_wait(self, step: str) -> Iterator[None]:
        """Like ``_step``, but a lock wait cut short by the deadline is a cancellation."""
        try:
            yield
        except OperationalError as exc:
            if self.deadline is not None and _is_lock_timeout(exc):
                raise TransferCancelledError(step, "transfer deadline exceeded waiting for lock") from exc
            raise TransferTxError(step, exc) from exc
        except SQLAlchemyError as exc:
            raise TransferTxError(step, exc) from exc


def _is_lock_timeout(exc: OperationalError) -> bool:
    # sqlite busy timeout, PostgreSQL lock_not_available
    return getattr(exc.orig, "pgcode", None) == "55P03" or "database is locked" in str(exc.orig)


@contextmanager
def _step(name: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise TransferTxError(name, exc) from exc


class Store:
    """Plain queries plus the atomic transfer transaction."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def queries(self) -> Iterator[Queries]:
        """Queries on a short-lived session; writes are committed on exit."""
        with self.session_factory() as db:
            yield Queries(db)
            db.commit()

    def get_account(self, account_id: int) -> Optional[schemas.Account]:
        with self.queries() as q:
            return q.get_account(account_id)

    def get_session(self, session_id: str) -> Optional[schemas.Session]:
        with self.queries() as q:
            return q.get_session(session_id)

    def exec_tx(self, fn: Callable[[Queries], T]) -> T:
        """Run ``fn`` inside one database transaction and return its result.

        Any exception from ``fn`` rolls the transaction back and is re-raised.
        If the rollback fails too, a RollbackError carrying both is raised.
        """
        db = self.session_factory()
        try:
            try:
                with _step("begin"):
                    db.begin()
                result = fn(Queries(db))
            except Exception as exc:
                try:
                    db.rollback()
                except SQLAlchemyError as rb_exc:
                    log_action(logger, "error", "rollback failed", action="rollback",
                               extra={"error": str(exc), "rollback_error": str(rb_exc)})
                    raise RollbackError(exc, rb_exc) from exc
                log_action(logger, "warning", "transaction rolled back", action="rollback",
                           extra={"error": str(exc)})
                raise
            with _step("commit"):
                db.commit()
            return result
        finally:
            db.close()

    def transfer_tx(
        self,
        params: TransferTxParams,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> TransferTxResult:
        """Move ``params.amount`` between two accounts in one transaction.

        Creates the transfer record, one entry per account and adjusts both
        balances. The amount is not validated here.
        """
        cancellation = _Cancellation(cancel, timeout)

        def unit_of_work(q: Queries) -> TransferTxResult:
            result = TransferTxResult()

            # the lock wait is bounded by what is left of the deadline
            cancellation.check("begin")
            with cancellation.lock_wait("begin"):
                q.db.connection(
                    execution_options={LOCK_TIMEOUT_OPTION: cancellation.remaining()}
                )

            cancellation.check("create transfer")
            with _step("create transfer"):
                result.transfer = q.create_transfer(
                    params.from_account_id, params.to_account_id, params.amount
                )

            cancellation.check("create from entry")
            with _step("create from entry"):
                result.from_entry = q.create_entry(params.from_account_id, -params.amount)

            cancellation.check("create to entry")
            with _step("create to entry"):
                result.to_entry = q.create_entry(params.to_account_id, params.amount)

            # lock rows in ascending id order so opposite transfers cannot deadlock
            cancellation.check("update balances")
            with cancellation.lock_wait("update balances"):
                if params.from_account_id < params.to_account_id:
                    result.from_account, result.to_account = add_money(
                        q, params.from_account_id, -params.amount,
                        params.to_account_id, params.amount,
                    )
                else:
                    result.to_account, result.from_account = add_money(
                        q, params.to_account_id, params.amount,
                        params.from_account_id, -params.amount,
                    )

            cancellation.check("commit")
            return result

        result = self.exec_tx(unit_of_work)
        log_action(logger, "info", "transfer committed", action="transfer",
                   resource=f"transfer:{result.transfer.id}",
                   extra={"from_account_id": params.from_account_id,
                          "to_account_id": params.to_account_id,
                          "amount": params.amount})
        return result


def add_money(
    q: Queries,
    account_id1: int,
    amount1: int,
    account_id2: int,
    amount2: int,
) -> Tuple[schemas.Account, schemas.Account]:
    account1 = q.add_account_balance(account_id1, amount1)
    account2 = q.add_account_balance(account_id2, amount2)
    return account1, account2
