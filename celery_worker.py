from celery import Celery
from fastapi import HTTPException
from config import get_settings
from db import sessionLocal
from logging_config import get_logger
import schemas
from services.store import Store
from services.transfer_service import TransferService

settings = get_settings()
logger = get_logger("bank.worker")

# Configure Celery
celery_app = Celery(
    "money_transfer_worker",
    broker=settings.celery.broker_url,
    backend=settings.celery.result_backend
)

# Celery configuration
celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)


def get_store() -> Store:
    """Store used by worker tasks."""
    return Store(sessionLocal)


@celery_app.task(name="transfers.schedule_money_transfer")
def schedule_money_transfer(
    from_account_id: int,
    to_account_id: int,
    amount: int,
    currency: str
):
    """
    Run a transfer that was scheduled for a later date.

    The ownership check happened when the transfer was scheduled; balances
    and currencies are checked again because they may have changed since.
    Failed transfers are reported, never retried.

    Args:
        from_account_id: ID of the account to debit
        to_account_id: ID of the account to credit
        amount: Amount in minor units
        currency: Currency both accounts must hold
    """
    transfer_service = TransferService(
        get_store(), timeout=settings.database.transfer_timeout
    )
    request = schemas.TransferRequest(
        from_account_id=from_account_id,
        to_account_id=to_account_id,
        amount=amount,
        currency=currency
    )

    try:
        result = transfer_service.execute_transfer(None, request)
    except HTTPException as e:
        logger.warning("scheduled transfer failed: %s", e.detail)
        return {"status": "failed", "error": e.detail}

    return {
        "status": "success",
        "message": "Scheduled transfer completed successfully",
        "transfer_id": result.transfer.id,
        "from_account": {
            "id": result.from_account.id,
            "balance": result.from_account.balance
        },
        "to_account": {
            "id": result.to_account.id,
            "balance": result.to_account.balance
        },
        "amount": amount
    }
