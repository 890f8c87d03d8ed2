from abc import ABC, abstractmethod

from pydantic import UUID4

from app.models.bookmark import Bookmark, BookmarkCreate
from app.services.change_feed import DeleteCallback, InsertCallback, Subscription


class BookmarkError(Exception):
    """Base exception for bookmark-related errors."""

    pass


class BookmarkNotFoundError(BookmarkError):
    """Exception raised when a bookmark is not found."""

    pass


class BookmarkValidationError(BookmarkError):
    """Exception raised when submitted bookmark data is rejected locally."""

    pass


class BookmarkStore(ABC):
    """Contract of the backend a bookmark list reconciles against.

    Implementations persist bookmarks per owner and notify subscribers of
    every insert and delete, including the ones they performed themselves.
    """

    @abstractmethod
    async def list_bookmarks(self, user_id: UUID4) -> list[Bookmark]:
        """Fetch a snapshot of the user's bookmarks, newest first.

        Raises:
            BookmarkError: If the snapshot cannot be fetched
        """
        raise NotImplementedError

    @abstractmethod
    async def create_bookmark(
        self, user_id: UUID4, bookmark: BookmarkCreate
    ) -> Bookmark:
        """Create a bookmark and return the stored record.

        Raises:
            BookmarkError: If creation fails
        """
        raise NotImplementedError

    @abstractmethod
    async def delete_bookmark(self, user_id: UUID4, bookmark_id: UUID4) -> None:
        """Delete one of the user's bookmarks.

        Raises:
            BookmarkNotFoundError: If the user owns no such bookmark
            BookmarkError: If deletion fails
        """
        raise NotImplementedError

    @abstractmethod
    def subscribe(
        self,
        user_id: UUID4,
        on_insert: InsertCallback,
        on_delete: DeleteCallback,
    ) -> Subscription:
        """Subscribe to the user's bookmark changes."""
        raise NotImplementedError

    @abstractmethod
    def unsubscribe(self, subscription: Subscription) -> None:
        """Cancel a subscription returned by :meth:`subscribe`."""
        raise NotImplementedError
