"""
Bearer-token guard for the /api/v1 routes.

When APP_API_TOKEN is set every versioned route requires
``Authorization: Bearer <token>``; when it is empty the API is open.
"""

import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from utils.config import AppConfig

_API_TOKEN: str = AppConfig.from_env().api_token

security = HTTPBearer(auto_error=False)


def set_api_token(token: str) -> None:
    global _API_TOKEN
    _API_TOKEN = token or ""


def require_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> None:
    """Reject the request with 401 unless it carries the configured token."""
    if not _API_TOKEN:
        return
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not secrets.compare_digest(credentials.credentials, _API_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API token",
            headers={"WWW-Authenticate": "Bearer"},
        )
