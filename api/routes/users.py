from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
import schemas
import random_data
from api.dependencies import get_store, get_token_service
from config import Settings, get_settings
from services.exceptions import InvalidCredentialsError
from services.store import Store
from services.token_service import TokenService, hash_password

router = APIRouter()

SEED_PASSWORD = "secret123"
SEED_USERS = 10


@router.post("/login", response_model=schemas.LoginResponse)
def login_user(
    payload: schemas.LoginRequest,
    request: Request,
    token_service: TokenService = Depends(get_token_service)
):
    """Log in and open a refresh session."""
    try:
        result = token_service.login(
            payload.username,
            payload.password,
            user_agent=request.headers.get("user-agent", ""),
            client_ip=request.client.host if request.client else ""
        )
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )

    return schemas.LoginResponse(
        session_id=result.session.id,
        access_token=result.access_token,
        access_token_expires_at=result.access_payload.expired_at,
        refresh_token=result.refresh_token,
        refresh_token_expires_at=result.refresh_payload.expired_at,
        user=schemas.UserResponse.model_validate(result.user)
    )


@router.post("/seed", status_code=status.HTTP_201_CREATED)
def seed_data(
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings)
):
    """Seed random demo users, each with one funded account."""
    if settings.environment == "production":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Seeding is disabled in production"
        )

    hashed_password = hash_password(SEED_PASSWORD)
    try:
        with store.queries() as q:
            usernames = []
            for _ in range(SEED_USERS):
                username = random_data.random_owner()
                while username in usernames or q.get_user(username):
                    username = random_data.random_owner()
                q.create_user(
                    username=username,
                    hashed_password=hashed_password,
                    full_name=username.title(),
                    email=random_data.random_email()
                )
                q.create_account(
                    owner=username,
                    balance=random_data.random_int(1000, 5000),
                    currency=random_data.random_currency()
                )
                usernames.append(username)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error"
        )

    return {"message": f"{SEED_USERS} users seeded successfully", "usernames": usernames}
