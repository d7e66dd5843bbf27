"""
Authentication — admin API key check for route protection.

Routes depend on require_admin. The bearer token must equal ADMIN_API_KEY;
when no key is configured the check is skipped (local development).
Version: 1.0.0
"""
import hmac
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dsz_sync.core.config import get_settings

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """Validate the admin bearer token and return the caller identity."""
    api_key = get_settings().admin_api_key
    if not api_key:
        return {"user_id": "admin", "auth": "disabled"}

    if credentials is None:
        logger.warning("Authentication failed - missing bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHORIZED", "message": "Missing bearer token"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not hmac.compare_digest(credentials.credentials, api_key):
        logger.warning("Authentication failed - invalid admin key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHORIZED", "message": "Invalid admin key"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {"user_id": "admin", "auth": "api_key"}
