"""
Authentication for the operations API.

Single admin account. Clients either log in once and send the returned JWT as a
bearer token, or send HTTP Basic credentials on every request.
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import HTTPBasic, HTTPBasicCredentials, HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from jose import jwt, JWTError

from auditdesk.core.config import settings

router = APIRouter()
basic_security = HTTPBasic(auto_error=False)
bearer_security = HTTPBearer(auto_error=False)

JWT_ALGORITHM = "HS256"


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


def _create_access_token(username: str) -> str:
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": username,
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)


def _verify_token(token: str) -> Optional[str]:
    """Username from a valid token, None otherwise"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[JWT_ALGORITHM])
        return payload.get("sub")
    except JWTError:
        return None


def _verify_credentials_internal(username: str, password: str) -> bool:
    """Constant-time comparison against the configured admin account"""
    correct_username = secrets.compare_digest(
        username.encode("utf-8"),
        settings.ADMIN_USERNAME.encode("utf-8")
    )
    correct_password = secrets.compare_digest(
        password.encode("utf-8"),
        settings.ADMIN_PASSWORD.encode("utf-8")
    )
    return correct_username and correct_password


async def verify_admin(
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(bearer_security),
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_security),
) -> str:
    username = None
    if bearer:
        username = _verify_token(bearer.credentials)
    if not username and credentials:
        if _verify_credentials_internal(credentials.username, credentials.password):
            username = credentials.username

    if not username:
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return username


require_admin = Depends(verify_admin)


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    if not _verify_credentials_internal(request.username, request.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return TokenResponse(
        access_token=_create_access_token(request.username),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
