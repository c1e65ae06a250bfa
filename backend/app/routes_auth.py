"""
Admin session routes.
A single admin password from the environment guards the admin API.
Session tokens are kept in memory, keyed by their SHA-256 hash.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from .services.authorization import hash_token, secrets_match
from .settings import get_settings

router = APIRouter(prefix="/api/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)

# token hash -> expiry; sessions do not survive a restart
_sessions: dict[str, datetime] = {}

SESSION_TTL_HOURS = 12


class LoginRequest(BaseModel):
    password: str


class LoginResponse(BaseModel):
    token: str
    expires_at: str


def _purge_expired() -> None:
    now = datetime.now(timezone.utc)
    for key in [k for k, exp in _sessions.items() if exp <= now]:
        del _sessions[key]


def _session_expiry(credentials: Optional[HTTPAuthorizationCredentials]) -> datetime | None:
    if not credentials or not credentials.credentials:
        return None
    _purge_expired()
    return _sessions.get(hash_token(credentials.credentials))


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest):
    """
    Exchange the admin password for a bearer token valid for 12 hours.
    With no password configured (local development) any login succeeds.
    """
    admin_password = get_settings().admin_password
    if admin_password and not secrets_match(request.password, admin_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")

    _purge_expired()
    token = secrets.token_urlsafe(32)
    expires_at = datetime.now(timezone.utc) + timedelta(hours=SESSION_TTL_HOURS)
    _sessions[hash_token(token)] = expires_at
    return LoginResponse(token=token, expires_at=expires_at.isoformat())


@router.post("/logout")
async def logout(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    if credentials and credentials.credentials:
        _sessions.pop(hash_token(credentials.credentials), None)
    return {"status": "logged out"}


@router.get("/me")
async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    expires_at = _session_expiry(credentials)
    if expires_at is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return {"authenticated": True, "expires_at": expires_at.isoformat()}


def require_auth(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> bool:
    """Dependency guarding admin routes."""
    if not get_settings().admin_password:
        return True
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if _session_expiry(credentials) is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return True
