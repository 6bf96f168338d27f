from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from typing import Optional
import schemas
from logging_config import get_logger
from services.exceptions import TransferCancelledError, TransferTxError
from services.store import Store, TransferTxParams, TransferTxResult

logger = get_logger("bank.transfers")


class TransferService:
    """Handle transfer validations and hand valid transfers to the store."""

    def __init__(self, store: Store, timeout: Optional[float] = None):
        self.store = store
        self.timeout = timeout

    def get_account(self, account_id: int, label: str) -> schemas.Account:
        """Fetch an account or fail with 404."""
        account = self.store.get_account(account_id)
        if not account:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{label} account not found"
            )
        return account

    def validate_transfer_request(
        self,
        username: Optional[str],
        from_account: schemas.Account,
        to_account: schemas.Account,
        amount: int,
        currency: str
    ) -> None:
        """Validate transfer constraints.

        ``username`` is the authenticated owner; None skips the ownership
        check for transfers that were already authorised when scheduled.
        """
        if amount <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid transfer amount"
            )

        if from_account.id == to_account.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot transfer to the same account"
            )

        for account in (from_account, to_account):
            if account.currency != currency:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Account {account.id} currency mismatch: {account.currency} vs {currency}"
                )

        if username is not None and from_account.owner != username:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="From account doesn't belong to the authenticated user"
            )

        if from_account.balance < amount:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Insufficient funds"
            )

    def execute_transfer(
        self,
        username: Optional[str],
        request: schemas.TransferRequest
    ) -> TransferTxResult:
        """Validate and execute the money transfer.

        The balance check above reads a snapshot, so a concurrent transfer can
        still drain the account first. The store then rejects the negative
        balance and the transfer is reported as insufficient funds.
        """
        from_account = self.get_account(request.from_account_id, "From")
        to_account = self.get_account(request.to_account_id, "To")

        self.validate_transfer_request(
            username, from_account, to_account, request.amount, request.currency
        )

        try:
            return self.store.transfer_tx(
                TransferTxParams(
                    from_account_id=from_account.id,
                    to_account_id=to_account.id,
                    amount=request.amount
                ),
                timeout=self.timeout
            )
        except TransferCancelledError as e:
            logger.warning("transfer cancelled at %s: %s", e.step, e.cause)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Transfer timed out"
            )
        except TransferTxError as e:
            if e.step == "update balances" and isinstance(e.cause, IntegrityError):
                logger.info("transfer rejected, balance would go negative")
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Insufficient funds"
                )
            logger.error("transfer failed at %s", e.step, exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Transfer failed"
            )
