"""Main FastAPI application entry point."""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from config import get_settings
from db import engine
from logging_config import setup_logging
import random_data
import schemas
from api.routes import users, tokens, transfers, tasks

settings = get_settings()
setup_logging(settings.logging.level, settings.logging.logger_name)
random_data.init_random()

app = FastAPI(
    title=settings.project_name,
    description="API for money transfers between accounts with token based sessions",
    version="1.0.0"
)

# Create all tables
schemas.Base.metadata.create_all(bind=engine)


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies as 400 Bad Request."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())}
    )


# Include routers
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(tokens.router, prefix="/tokens", tags=["Tokens"])
app.include_router(transfers.router, prefix="/transfers", tags=["Transfers"])
app.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])


@app.get("/", tags=["Health"])
def home():
    """Health check endpoint."""
    return {"message": "Server is running successfully"}
