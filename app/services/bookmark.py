from datetime import UTC, datetime
from uuid import uuid4

from neo4j import ManagedTransaction
from pydantic import UUID4

from app.db import DatabaseManager
from app.models.bookmark import Bookmark, BookmarkChange, BookmarkCreate
from app.services.change_feed import (
    ChangeFeed,
    DeleteCallback,
    InsertCallback,
    Subscription,
)
from app.services.store import (
    BookmarkError,
    BookmarkNotFoundError,
    BookmarkStore,
    BookmarkValidationError,
)

__all__ = [
    "BookmarkError",
    "BookmarkNotFoundError",
    "BookmarkService",
    "BookmarkValidationError",
]


class BookmarkService(BookmarkStore):
    """Neo4j-backed bookmark store.

    Bookmarks hang off their owner as ``(:User)-[:OWNS]->(:Bookmark)``.
    Every successful write is published on the change feed so that all
    open sessions of the owner can reconcile it.

    Attributes:
        feed: The change feed writes are published on
    """

    def __init__(self, feed: ChangeFeed | None = None) -> None:
        self.feed: ChangeFeed = feed or ChangeFeed()

    async def list_bookmarks(self, user_id: UUID4) -> list[Bookmark]:
        """Get a snapshot of a user's bookmarks.

        Args:
            user_id: ID of the owner

        Returns:
            The user's bookmarks, newest first

        Raises:
            BookmarkError: If fetching fails
        """
        db_manager = DatabaseManager()
        with db_manager.session() as session:
            try:
                return session.execute_read(self._list_bookmarks, user_id)
            except Exception as e:
                raise BookmarkError(f"Failed to get bookmarks: {str(e)}")

    def _list_bookmarks(
        self, tx: ManagedTransaction, user_id: UUID4
    ) -> list[Bookmark]:
        query = """
        MATCH (:User {user_id: $user_id})-[:OWNS]->(b:Bookmark)
        RETURN b
        ORDER BY b.created_at DESC
        """
        result = tx.run(query, user_id=str(user_id))
        return [Bookmark(**record["b"]) for record in result]

    async def create_bookmark(
        self, user_id: UUID4, bookmark: BookmarkCreate
    ) -> Bookmark:
        """Create a new bookmark and announce it on the change feed.

        Args:
            user_id: ID of the owner
            bookmark: The validated title and URL

        Returns:
            The created bookmark with its assigned ID and timestamp

        Raises:
            BookmarkError: If bookmark creation fails
        """
        db_manager = DatabaseManager()
        with db_manager.session() as session:
            try:
                created = session.execute_write(
                    self._create_bookmark, user_id, bookmark
                )
            except Exception as e:
                raise BookmarkError(f"Failed to create bookmark: {str(e)}")
        await self.feed.publish(BookmarkChange.insert(created))
        return created

    def _create_bookmark(
        self, tx: ManagedTransaction, user_id: UUID4, bookmark: BookmarkCreate
    ) -> Bookmark:
        query = """
        MATCH (user:User {user_id: $user_id})
        CREATE (b:Bookmark {
            bookmark_id: $bookmark_id,
            user_id: $user_id,
            url: $url,
            title: $title,
            created_at: $current_time
        })
        CREATE (user)-[:OWNS]->(b)
        RETURN b
        """
        result = tx.run(
            query,
            bookmark_id=str(uuid4()),
            user_id=str(user_id),
            url=bookmark.url,
            title=bookmark.title,
            current_time=datetime.now(UTC).isoformat(),
        )
        if record := result.single():
            return Bookmark(**record["b"])
        raise BookmarkError("Failed to create bookmark")

    async def delete_bookmark(self, user_id: UUID4, bookmark_id: UUID4) -> None:
        """Delete a bookmark and announce it on the change feed.

        Args:
            user_id: ID of the owner requesting the deletion
            bookmark_id: ID of the bookmark to delete

        Raises:
            BookmarkNotFoundError: If the user owns no such bookmark
            BookmarkError: If removal fails
        """
        db_manager = DatabaseManager()
        with db_manager.session() as session:
            try:
                session.execute_write(self._delete_bookmark, user_id, bookmark_id)
            except BookmarkNotFoundError:
                raise
            except Exception as e:
                raise BookmarkError(f"Failed to delete bookmark: {str(e)}")
        await self.feed.publish(BookmarkChange.delete(user_id, bookmark_id))

    def _delete_bookmark(
        self, tx: ManagedTransaction, user_id: UUID4, bookmark_id: UUID4
    ) -> None:
        query = """
        MATCH (:User {user_id: $user_id})-[:OWNS]->(b:Bookmark {bookmark_id: $bookmark_id})
        DETACH DELETE b
        """
        result = tx.run(query, user_id=str(user_id), bookmark_id=str(bookmark_id))
        if not result.consume().counters.nodes_deleted:
            raise BookmarkNotFoundError("Bookmark not found")

    def subscribe(
        self,
        user_id: UUID4,
        on_insert: InsertCallback,
        on_delete: DeleteCallback,
    ) -> Subscription:
        return self.feed.subscribe(user_id, on_insert, on_delete)

    def unsubscribe(self, subscription: Subscription) -> None:
        self.feed.unsubscribe(subscription)
