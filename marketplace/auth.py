import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from jose import jwt as jose_jwt
from sqlalchemy.orm import Session

from .config import Settings
from .database import get_db
from .errors import AuthorizationError
from .models import ROLE_ADMIN, User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# ============================================================================
# CRON TRIGGER
# ============================================================================


def require_cron_secret(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject the request unless it carries the configured cron bearer secret"""
    if not settings.cron_secret:
        logger.warning("⚠️ CRON_SECRET not configured - cron endpoints are unprotected")
        return

    token = credentials.credentials if credentials else ""
    if not secrets.compare_digest(token.encode(), settings.cron_secret.encode()):
        logger.warning(f"🚫 Cron trigger rejected for {request.url.path}: bad or missing secret")
        raise AuthorizationError("Invalid cron secret")


# ============================================================================
# USER TOKENS
# ============================================================================


def create_access_token(
    settings: Settings, data: dict[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT token

    Args:
        data: Data to encode in the token
        expires_delta: Token expiration time (default 15 minutes)
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jose_jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: Settings, token: str) -> Optional[dict[str, Any]]:
    """Decoded payload if valid, None if invalid or expired"""
    try:
        return jose_jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> User:
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = decode_access_token(settings, credentials.credentials)
    if not payload or "sub" not in payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject") from None

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        logger.warning(f"🚫 Token for unknown or inactive user {user_id}")
        raise HTTPException(status_code=401, detail="User not found or inactive")

    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != ROLE_ADMIN:
        logger.warning(f"🚫 User {current_user.id} attempted admin access")
        raise HTTPException(status_code=403, detail="Forbidden")
    return current_user
