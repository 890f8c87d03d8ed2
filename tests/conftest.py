from datetime import UTC, datetime, timedelta
from typing import Any, Generator
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from pydantic import UUID4

from app.models.bookmark import Bookmark, BookmarkChange, BookmarkCreate
from app.models.user import User
from app.services.auth import AuthService
from app.services.bookmark import BookmarkService
from app.services.change_feed import ChangeFeed, DeleteCallback, InsertCallback, Subscription
from app.services.store import BookmarkError, BookmarkNotFoundError, BookmarkStore


class FakeBookmarkStore(BookmarkStore):
    """In-memory store that records calls and can be told to fail.

    Successful writes are published on ``feed`` like the Neo4j store does.
    """

    def __init__(self, user_id: UUID4) -> None:
        self.user_id = user_id
        self.feed = ChangeFeed()
        self.rows: list[Bookmark] = []
        self.created: list[BookmarkCreate] = []
        self.deleted: list[UUID4] = []
        self.next_record: Bookmark | None = None
        self.fail_list: bool = False
        self.fail_create: bool = False
        self.fail_delete: bool = False

    async def list_bookmarks(self, user_id: UUID4) -> list[Bookmark]:
        if self.fail_list:
            raise BookmarkError("Failed to get bookmarks: offline")
        return sorted(
            (b for b in self.rows if b.user_id == user_id),
            key=lambda b: b.created_at,
            reverse=True,
        )

    async def create_bookmark(
        self, user_id: UUID4, bookmark: BookmarkCreate
    ) -> Bookmark:
        self.created.append(bookmark)
        if self.fail_create:
            raise BookmarkError("Failed to create bookmark: duplicate key")
        record = self.next_record or make_bookmark(
            user_id, url=bookmark.url, title=bookmark.title
        )
        self.rows.append(record)
        await self.feed.publish(BookmarkChange.insert(record))
        return record

    async def delete_bookmark(self, user_id: UUID4, bookmark_id: UUID4) -> None:
        self.deleted.append(bookmark_id)
        if self.fail_delete:
            raise BookmarkError("Failed to delete bookmark: timeout")
        before = len(self.rows)
        self.rows = [b for b in self.rows if b.bookmark_id != bookmark_id]
        if len(self.rows) == before:
            raise BookmarkNotFoundError("Bookmark not found")
        await self.feed.publish(BookmarkChange.delete(user_id, bookmark_id))

    def subscribe(
        self,
        user_id: UUID4,
        on_insert: InsertCallback,
        on_delete: DeleteCallback,
    ) -> Subscription:
        return self.feed.subscribe(user_id, on_insert, on_delete)

    def unsubscribe(self, subscription: Subscription) -> None:
        self.feed.unsubscribe(subscription)


def make_bookmark(
    user_id: UUID4,
    created_at: datetime | None = None,
    url: str = "https://example.com",
    title: str = "Example",
) -> Bookmark:
    return Bookmark(
        bookmark_id=uuid4(),
        user_id=user_id,
        url=url,
        title=title,
        created_at=created_at or datetime.now(UTC),
    )


# Service fixtures
@pytest.fixture
def auth_service() -> AuthService:
    return AuthService()


@pytest.fixture
def change_feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def bookmark_service(change_feed: ChangeFeed) -> BookmarkService:
    return BookmarkService(feed=change_feed)


# Database fixtures
@pytest.fixture
def mock_db_session() -> Generator[MagicMock, None, None]:
    """Patch the service's DatabaseManager; transactions run inline on a mock tx."""
    with patch("app.services.bookmark.DatabaseManager") as mock_manager:
        session = MagicMock()
        mock_manager.return_value.session.return_value.__enter__.return_value = (
            session
        )

        def run_inline(work: Any, *args: Any) -> Any:
            return work(MagicMock(), *args)

        session.execute_read.side_effect = run_inline
        session.execute_write.side_effect = run_inline
        yield session


# Test data fixtures
@pytest.fixture
def test_user() -> User:
    return User(
        user_id=uuid4(),
        auth_id="google-oauth2|test",
        email="test@example.com",
        display_name="Test User",
        avatar_url=None,
        created_at=datetime.now(UTC),
    )


@pytest.fixture
def another_test_user() -> User:
    return User(
        user_id=uuid4(),
        auth_id="google-oauth2|another",
        email="another_test@example.com",
        display_name="Another Test User",
        avatar_url="https://example.com/avatar.png",
        created_at=datetime.now(UTC),
    )


@pytest.fixture
def fake_store(test_user: User) -> FakeBookmarkStore:
    return FakeBookmarkStore(test_user.user_id)


@pytest.fixture
def older_bookmarks(test_user: User) -> list[Bookmark]:
    """Two stored bookmarks, newest first."""
    newest = datetime(2024, 1, 2, tzinfo=UTC)
    return [
        make_bookmark(test_user.user_id, newest, "https://one.example", "One"),
        make_bookmark(
            test_user.user_id, newest - timedelta(days=1), "https://two.example", "Two"
        ),
    ]


@pytest.fixture
def bookmark_factory(test_user: User):
    def factory(created_at: datetime | None = None, **kwargs: Any) -> Bookmark:
        return make_bookmark(test_user.user_id, created_at, **kwargs)

    return factory
