"""
Cookie-carried JWT sessions and the auth dependencies built on them.

`require_user` resolves the caller's email from the ``token`` cookie;
`require_admin` additionally checks the stored role. Failures raise
UnauthorizedError (401) and ForbiddenError (403) respectively.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Cookie, Depends, Response

from config import settings
from database import Stores, get_stores
from exceptions import ApiError, ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "token"
ALGORITHM = "HS256"
ADMIN_ROLE = "admin"


def issue_token(email: str, secret: Optional[str] = None, ttl_days: Optional[int] = None) -> str:
    secret = secret or settings.access_token_secret
    if not secret:
        raise ApiError("token signing is not configured")
    ttl = ttl_days or settings.token_ttl_days
    now = datetime.now(timezone.utc)
    payload = {"email": email, "iat": now, "exp": now + timedelta(days=ttl)}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_token(token: Optional[str], secret: Optional[str] = None) -> str:
    """Return the email bound to a valid token."""
    if not token:
        raise UnauthorizedError()
    secret = secret or settings.access_token_secret
    if not secret:
        raise UnauthorizedError()
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.PyJWTError as e:
        logger.info("Rejected token: %s", e)
        raise UnauthorizedError()
    email = claims.get("email")
    if not email:
        raise UnauthorizedError()
    return email


def _cookie_flags() -> dict:
    if settings.is_production:
        return {"secure": True, "samesite": "none"}
    return {"secure": False, "samesite": "strict"}


def set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=settings.token_ttl_days * 24 * 60 * 60,
        httponly=True,
        **_cookie_flags(),
    )


def clear_token_cookie(response: Response) -> None:
    response.delete_cookie(TOKEN_COOKIE, httponly=True, **_cookie_flags())


# Dependencies
def require_user(token: Optional[str] = Cookie(default=None)) -> str:
    return verify_token(token)


def require_admin(
    email: str = Depends(require_user),
    stores: Stores = Depends(get_stores),
) -> str:
    user = stores.users.find_one({"email": email}, projection={"role": 1})
    if not user or user.get("role") != ADMIN_ROLE:
        raise ForbiddenError("admin access required")
    return email
