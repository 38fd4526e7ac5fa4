# main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workpilot.config import API_PREFIX, CORS_ORIGINS, CREATE_TABLES_ON_STARTUP
from workpilot.core.logging import configure_logging
from workpilot.database import create_tables
from workpilot.repository import ConcurrentUpdateError, EmailAlreadyRegisteredError, InUseError, NotFoundError
from workpilot.routers import (
    api, auth, customer_orders, customers, dashboard, orders, task_stages, tasks, users,
)
from workpilot.services import InvalidCredentialsError
from workpilot.transitions import OrderTransitionError

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if CREATE_TABLES_ON_STARTUP:
        log.info("Creating database tables")
        create_tables()
    log.info("WorkPilot API started")
    yield


app = FastAPI(
    title="WorkPilot",
    redirect_slashes=False,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, exc: Exception, headers=None) -> JSONResponse:
    code = getattr(exc, "code", "BAD_REQUEST")
    return JSONResponse(status_code=status_code, content={"message": str(exc), "code": code}, headers=headers)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(InUseError)
async def in_use_handler(request: Request, exc: InUseError):
    return _error(status.HTTP_409_CONFLICT, exc)


@app.exception_handler(OrderTransitionError)
async def transition_handler(request: Request, exc: OrderTransitionError):
    return _error(status.HTTP_409_CONFLICT, exc)


@app.exception_handler(ConcurrentUpdateError)
async def concurrent_update_handler(request: Request, exc: ConcurrentUpdateError):
    log.warning("Concurrent update rejected: %s", exc)
    return _error(status.HTTP_409_CONFLICT, exc)


@app.exception_handler(EmailAlreadyRegisteredError)
async def email_taken_handler(request: Request, exc: EmailAlreadyRegisteredError):
    return _error(status.HTTP_409_CONFLICT, exc)


@app.exception_handler(InvalidCredentialsError)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentialsError):
    return _error(status.HTTP_401_UNAUTHORIZED, exc, headers={"WWW-Authenticate": "Bearer"})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return _error(status.HTTP_400_BAD_REQUEST, exc)


# Include routers
for module in (api, auth, users, customers, task_stages, tasks, orders, customer_orders, dashboard):
    app.include_router(module.router, prefix=API_PREFIX)
