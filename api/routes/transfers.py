from fastapi import APIRouter, Depends, HTTPException, status
from datetime import datetime
import schemas
from api.dependencies import get_current_payload, get_store
from config import Settings, get_settings
from logging_config import get_logger
from services.store import Store
from services.token_maker import Payload
from services.transfer_service import TransferService
from celery_worker import schedule_money_transfer

router = APIRouter()
logger = get_logger("bank.api.transfers")


@router.post(
    "/immediate",
    status_code=status.HTTP_200_OK,
    response_model=schemas.TransferTxResponse
)
def money_transfer(
    request: schemas.TransferRequest,
    store: Store = Depends(get_store),
    auth: Payload = Depends(get_current_payload),
    settings: Settings = Depends(get_settings)
):
    """Immediate money transfer between accounts."""
    transfer_service = TransferService(store, timeout=settings.database.transfer_timeout)
    result = transfer_service.execute_transfer(auth.username, request)
    return schemas.TransferTxResponse.model_validate(result)


@router.post("/scheduled", status_code=status.HTTP_202_ACCEPTED)
def scheduled_money_transfer(
    request: schemas.ScheduledTransferRequest,
    store: Store = Depends(get_store),
    auth: Payload = Depends(get_current_payload)
):
    """Schedule a money transfer for a future date."""
    transfer_service = TransferService(store)
    from_account = transfer_service.get_account(request.from_account_id, "From")
    to_account = transfer_service.get_account(request.to_account_id, "To")
    transfer_service.validate_transfer_request(
        auth.username, from_account, to_account, request.amount, request.currency
    )

    scheduled_datetime = datetime.combine(
        request.scheduled_date,
        datetime.min.time()
    )
    if scheduled_datetime < datetime.now():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Scheduled date must be in the future"
        )

    try:
        task = schedule_money_transfer.apply_async(
            args=[
                request.from_account_id,
                request.to_account_id,
                request.amount,
                request.currency
            ],
            eta=scheduled_datetime
        )
    except Exception:
        logger.error("cannot enqueue scheduled transfer", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to schedule transfer"
        )

    return {
        "message": "Transfer scheduled successfully",
        "task_id": task.id,
        "scheduled_date": request.scheduled_date.isoformat(),
        "from_account_id": request.from_account_id,
        "to_account_id": request.to_account_id,
        "amount": request.amount
    }
