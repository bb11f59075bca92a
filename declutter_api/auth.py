"""
Password hashing and access tokens.

Passwords are hashed with bcrypt through passlib. Access tokens are HS256
JWTs carrying the caller's email as the identity claim and expire after
``ACCESS_TOKEN_EXPIRE_HOURS`` (24 by default).

Protected routes declare a ``CurrentEmail`` parameter. The raw value of the
Authorization header is treated as the token; no "Bearer" prefix is expected.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from passlib.context import CryptContext

from declutter_api.config import settings
from declutter_api.exceptions import InvalidTokenError, MissingTokenError
from declutter_api.logging import log_context

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

token_header = APIKeyHeader(name="Authorization", auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def issue_token(email: str, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS))
    payload = {"email": email, "iat": now, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: Optional[str]) -> str:
    """
    Decode ``token`` and return the email it was issued for.

    Raises:
        MissingTokenError: no token was presented
        InvalidTokenError: bad signature, expired, or no email claim
    """
    if not token:
        raise MissingTokenError()
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.InvalidTokenError as exc:
        raise InvalidTokenError() from exc

    email = payload.get("email")
    if not isinstance(email, str) or not email:
        raise InvalidTokenError()
    return email


async def get_current_email(
    request: Request,
    token: Annotated[Optional[str], Depends(token_header)],
) -> str:
    email = verify_token(token)
    request.state.email = email
    log_context(email=email)
    return email


CurrentEmail = Annotated[str, Depends(get_current_email)]
