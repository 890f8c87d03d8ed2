from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.models.user import User
from app.services.auth import (
    AuthService,
    InvalidTokenError,
    TokenExpiredError,
    UserNotFoundError,
)
from app.services.bookmark import BookmarkService

SESSION_COOKIE = "access_token"

security = HTTPBearer(auto_error=False)
auth_service = AuthService()
bookmark_service = BookmarkService()


def get_bookmark_service() -> BookmarkService:
    return bookmark_service


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> User:
    """Dependency for getting the current authenticated user.

    The access token is taken from the bearer Authorization header or,
    for browser requests, from the session cookie set by the OAuth callback.

    Args:
        request: The FastAPI request object
        credentials: The bearer credentials, if the header was sent

    Returns:
        The authenticated user

    Raises:
        HTTPException: If authentication fails
    """
    token = credentials.credentials if credentials else request.cookies.get(
        SESSION_COOKIE
    )
    try:
        if not token:
            raise InvalidTokenError("Not authenticated")
        return await auth_service.get_current_user(token)
    except (InvalidTokenError, TokenExpiredError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    except UserNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
