from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import Settings, get_settings
from db import sessionLocal
from services.exceptions import TokenError
from services.store import Store
from services.token_maker import JWTMaker, Payload
from services.token_service import TokenService

bearer_scheme = HTTPBearer(auto_error=False)


def get_store() -> Store:
    """Store dependency."""
    return Store(sessionLocal)


def get_token_maker(settings: Settings = Depends(get_settings)) -> JWTMaker:
    return JWTMaker(settings.security.token_symmetric_key, settings.security.algorithm)


def get_token_service(
    store: Store = Depends(get_store),
    token_maker: JWTMaker = Depends(get_token_maker),
    settings: Settings = Depends(get_settings),
) -> TokenService:
    return TokenService(
        token_maker,
        store,
        access_token_duration=settings.access_token_duration,
        refresh_token_duration=settings.refresh_token_duration,
    )


def get_current_payload(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    token_maker: JWTMaker = Depends(get_token_maker),
) -> Payload:
    """Verify the bearer access token of the request."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header is not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return token_maker.verify_token(credentials.credentials)
    except TokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
