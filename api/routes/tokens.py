from fastapi import APIRouter, Depends, HTTPException, status
import schemas
from api.dependencies import get_token_service
from logging_config import get_logger
from services.exceptions import (
    ExpiredTokenError,
    InvalidTokenError,
    SessionError,
    SessionNotFoundError,
    TokenCreationError,
)
from services.token_service import TokenService

router = APIRouter()
logger = get_logger("bank.api.tokens")


@router.post("/renew_access", response_model=schemas.RenewAccessTokenResponse)
def renew_access_token(
    request: schemas.RenewAccessTokenRequest,
    token_service: TokenService = Depends(get_token_service)
):
    """Exchange a refresh token for a new access token."""
    try:
        access_token, access_payload = token_service.renew_access_token(request.refresh_token)
    except (InvalidTokenError, SessionNotFoundError) as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except (ExpiredTokenError, SessionError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )
    except TokenCreationError:
        logger.error("cannot issue renewed access token", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Cannot create access token"
        )

    return schemas.RenewAccessTokenResponse(
        access_token=access_token,
        access_token_expires_at=access_payload.expired_at
    )
