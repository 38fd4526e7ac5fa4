import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from pydantic import BaseModel

from workpilot.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET_KEY, REFRESH_TOKEN_EXPIRE_DAYS,
)
from workpilot.database import get_db
from workpilot.repository import PostgreSQLWorkPilotRepository

log = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/authenticate", auto_error=False)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class AuthenticatedUser(BaseModel):
    user_id: int
    email: str
    full_name: str | None = None
    company_name: str | None = None
    disabled: bool | None = False


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def _create_token(user_id: int, email: str, token_version: int, token_type: str, expires: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "ver": token_version,
        "type": token_type,
        "iat": now,
        "exp": now + expires,
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def create_access_token(user_id: int, email: str, token_version: int = 0,
                        expires_minutes: Optional[int] = None) -> str:
    minutes = ACCESS_TOKEN_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    return _create_token(user_id, email, token_version, ACCESS_TOKEN_TYPE, timedelta(minutes=minutes))


def create_refresh_token(user_id: int, email: str, token_version: int = 0,
                         expires_days: Optional[int] = None) -> str:
    days = REFRESH_TOKEN_EXPIRE_DAYS if expires_days is None else expires_days
    return _create_token(user_id, email, token_version, REFRESH_TOKEN_TYPE, timedelta(days=days))


def credentials_exception(detail: str = "Invalid authentication credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str, expected_type: str) -> Dict[str, Any]:
    """Validate signature, expiry and token type; return the claims."""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        log.warning("Rejected expired %s token", expected_type)
        raise credentials_exception("Token expired") from e
    except jwt.InvalidTokenError as e:
        log.warning("Rejected invalid %s token: %s", expected_type, e)
        raise credentials_exception() from e

    if payload.get("type") != expected_type:
        raise credentials_exception(f"Expected an {expected_type} token")
    if not str(payload.get("sub", "")).isdigit():
        raise credentials_exception()
    return payload


async def get_current_user(
        token: Annotated[Optional[str], Depends(oauth2_scheme)],
        db=Depends(get_db),
) -> AuthenticatedUser:
    """Resolve the bearer access token to the user it was issued for."""
    if not token:
        raise credentials_exception()

    payload = decode_token(token, ACCESS_TOKEN_TYPE)
    repo = PostgreSQLWorkPilotRepository(db)
    account = await repo.get_user_by_id(int(payload["sub"]))
    if not account or account.token_version != payload.get("ver"):
        log.warning("Access token no longer valid", extra={"user_id": payload.get("sub")})
        raise credentials_exception()

    return AuthenticatedUser(
        user_id=account.id,
        email=account.email,
        full_name=f"{account.firstname} {account.lastname}".strip(),
        company_name=account.company_name,
        disabled=False,
    )


async def get_current_active_user(
        current_user: Annotated[AuthenticatedUser, Depends(get_current_user)]
) -> AuthenticatedUser:
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user
