from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from jose import JWTError, jwt
from fastapi_limiter.depends import RateLimiter
from sqlalchemy.ext.asyncio import async_sessionmaker

from . import models
from .config import settings
from .crud import Collection
from .database import get_session_factory

api_key_header = APIKeyHeader(name="Authorization")


def decode_subject(token: str) -> int:
    """
    Decodes the JWT from the 'Authorization: Bearer ...' header and returns
    the user ID it was issued for.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        scheme, jwt_token = token.split()
        if scheme.lower() != "bearer":
            raise credentials_exception
        payload = jwt.decode(jwt_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise credentials_exception
        return int(subject)
    except (JWTError, ValueError, AttributeError, TypeError):
        raise credentials_exception


async def get_current_admin(
    token: Annotated[str, Depends(api_key_header)],
    session_factory: Annotated[async_sessionmaker, Depends(get_session_factory)],
) -> models.User:
    """Only active ADMIN or SUPER_ADMIN users may use the back-office."""
    user_id = decode_subject(token)
    user = await Collection(models.User, session_factory).get(user_id)
    if user is None or not user.active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.role not in models.ADMIN_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


async def get_key_by_user_id_or_ip(request: Request) -> str:
    """
    Rate-limit key: the admin's user ID from the token, falling back to the
    client's IP when the token is missing or unreadable.
    """
    try:
        return str(decode_subject(request.headers.get("Authorization")))
    except HTTPException:
        return request.client.host if request.client else "unknown"


action_rate_limiter = RateLimiter(
    times=settings.ACTION_RATE_LIMIT_PER_MINUTE,
    minutes=1,
    identifier=get_key_by_user_id_or_ip,
)

AdminUser = Annotated[models.User, Depends(get_current_admin)]
SessionFactory = Annotated[async_sessionmaker, Depends(get_session_factory)]
