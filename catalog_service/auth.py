# catalog_service/auth.py

"""
Server-side admin check for the mutating catalog routes.
Credentials are sent with every request (HTTP Basic) and compared against the
configured operator account; nothing held by the client is trusted.
"""
import logging
import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

logger = logging.getLogger(__name__)

# auto_error=False so a missing header yields our 401 rather than FastAPI's.
security = HTTPBasic(auto_error=False)


def require_admin(
    request: Request, credentials: HTTPBasicCredentials = Depends(security)
) -> str:
    """Return the authenticated operator's username or raise 401."""
    settings = request.app.state.settings
    if credentials is not None:
        username_ok = secrets.compare_digest(
            credentials.username.encode("utf-8"), settings.admin_username.encode("utf-8")
        )
        password_ok = secrets.compare_digest(
            credentials.password.encode("utf-8"), settings.admin_password.encode("utf-8")
        )
        if username_ok and password_ok:
            return credentials.username

    logger.warning(f"Rejected unauthenticated {request.method} {request.url.path}")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid admin credentials",
        headers={"WWW-Authenticate": "Basic"},
    )
