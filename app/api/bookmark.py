from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import UUID4

from app.dependencies import get_bookmark_service, get_current_user
from app.models.bookmark import Bookmark, BookmarkCreate
from app.models.user import User
from app.services.bookmark import BookmarkError, BookmarkNotFoundError, BookmarkService

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.get("", response_model=list[Bookmark])
async def list_bookmarks(
    current_user: Annotated[User, Depends(get_current_user)],
    bookmark_service: Annotated[BookmarkService, Depends(get_bookmark_service)],
) -> list[Bookmark]:
    """List the current user's bookmarks, newest first.

    Raises:
        HTTPException: If fetching bookmarks fails
    """
    try:
        return await bookmark_service.list_bookmarks(current_user.user_id)
    except BookmarkError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.post("", response_model=Bookmark, status_code=status.HTTP_201_CREATED)
async def create_bookmark(
    bookmark: BookmarkCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    bookmark_service: Annotated[BookmarkService, Depends(get_bookmark_service)],
) -> Bookmark:
    """Create a bookmark for the current user.

    Open dashboards of the same user receive the new bookmark through the
    change feed.

    Args:
        bookmark: The title and URL to save
        current_user: The authenticated user
        bookmark_service: The bookmark store

    Returns:
        The created bookmark

    Raises:
        HTTPException: If bookmark creation fails
    """
    try:
        return await bookmark_service.create_bookmark(current_user.user_id, bookmark)
    except BookmarkError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.delete("/{bookmark_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bookmark(
    bookmark_id: UUID4,
    current_user: Annotated[User, Depends(get_current_user)],
    bookmark_service: Annotated[BookmarkService, Depends(get_bookmark_service)],
) -> None:
    """Delete one of the current user's bookmarks.

    Raises:
        HTTPException: If the bookmark does not exist or removal fails
    """
    try:
        await bookmark_service.delete_bookmark(current_user.user_id, bookmark_id)
    except BookmarkNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except BookmarkError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
