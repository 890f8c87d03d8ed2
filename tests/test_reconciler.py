import asyncio
from datetime import UTC, datetime
from uuid import uuid4

import pytest

from app.models.bookmark import Bookmark
from app.models.user import User
from app.services.reconciler import BookmarkList
from app.services.store import BookmarkError, BookmarkValidationError


def ids(bookmark_list: BookmarkList) -> list:
    return [b.bookmark_id for b in bookmark_list.bookmarks]


@pytest.mark.unit
class TestApplyOperations:
    @pytest.fixture
    def bookmark_list(self, fake_store, test_user: User) -> BookmarkList:
        return BookmarkList(fake_store, test_user.user_id)

    def test_initialize_replaces_state(
        self, bookmark_list: BookmarkList, older_bookmarks, bookmark_factory
    ):
        bookmark_list.apply_insert(bookmark_factory())

        bookmark_list.initialize(older_bookmarks)

        assert bookmark_list.bookmarks == older_bookmarks

    def test_bookmarks_is_a_copy(self, bookmark_list: BookmarkList, older_bookmarks):
        bookmark_list.initialize(older_bookmarks)

        bookmark_list.bookmarks.clear()

        assert len(bookmark_list) == 2

    def test_apply_insert_prepends(
        self, bookmark_list: BookmarkList, older_bookmarks, bookmark_factory
    ):
        bookmark_list.initialize(older_bookmarks)
        new = bookmark_factory()

        assert bookmark_list.apply_insert(new) is True
        assert ids(bookmark_list) == [
            new.bookmark_id,
            older_bookmarks[0].bookmark_id,
            older_bookmarks[1].bookmark_id,
        ]

    def test_apply_insert_never_duplicates(
        self, bookmark_list: BookmarkList, bookmark_factory
    ):
        first, second = bookmark_factory(), bookmark_factory()

        for candidate in [first, second, first, second, first]:
            bookmark_list.apply_insert(candidate)

        assert ids(bookmark_list) == [second.bookmark_id, first.bookmark_id]

    def test_apply_insert_redelivery_is_noop(
        self, bookmark_list: BookmarkList, bookmark_factory
    ):
        bookmark = bookmark_factory()
        bookmark_list.apply_insert(bookmark)

        assert bookmark_list.apply_insert(bookmark) is False
        assert len(bookmark_list) == 1

    def test_apply_insert_same_tick_last_call_wins_head(
        self, bookmark_list: BookmarkList, bookmark_factory
    ):
        same_time = datetime(2024, 1, 3, tzinfo=UTC)
        a = bookmark_factory(same_time)
        b = bookmark_factory(same_time)

        bookmark_list.apply_insert(a)
        bookmark_list.apply_insert(b)

        assert ids(bookmark_list) == [b.bookmark_id, a.bookmark_id]

    def test_apply_delete_twice_equals_once(
        self, bookmark_list: BookmarkList, older_bookmarks
    ):
        bookmark_list.initialize(older_bookmarks)
        target = older_bookmarks[0].bookmark_id

        assert bookmark_list.apply_delete(target) is True
        after_once = bookmark_list.bookmarks
        assert bookmark_list.apply_delete(target) is False

        assert bookmark_list.bookmarks == after_once

    def test_apply_delete_unknown_id_is_noop(
        self, bookmark_list: BookmarkList, older_bookmarks
    ):
        bookmark_list.initialize(older_bookmarks)

        assert bookmark_list.apply_delete(uuid4()) is False
        assert bookmark_list.bookmarks == older_bookmarks

    def test_insert_then_delete_cancels_out(
        self, bookmark_list: BookmarkList, older_bookmarks, bookmark_factory
    ):
        bookmark_list.initialize(older_bookmarks)
        before = bookmark_list.bookmarks
        bookmark = bookmark_factory()

        bookmark_list.apply_insert(bookmark)
        bookmark_list.apply_delete(bookmark.bookmark_id)

        assert bookmark_list.bookmarks == before


@pytest.mark.unit
class TestRequestCreate:
    @pytest.fixture
    def bookmark_list(self, fake_store, test_user: User, older_bookmarks) -> BookmarkList:
        fake_store.rows = list(older_bookmarks)
        bookmark_list = BookmarkList(fake_store, test_user.user_id)
        bookmark_list.initialize(older_bookmarks)
        return bookmark_list

    @pytest.mark.asyncio
    async def test_create_prepends_server_record(
        self, bookmark_list: BookmarkList, fake_store, older_bookmarks, bookmark_factory
    ):
        # Arrange
        server_record = bookmark_factory(
            datetime(2024, 1, 3, tzinfo=UTC), url="https://example.com"
        )
        fake_store.next_record = server_record

        # Act
        result = await bookmark_list.request_create("Example", "example.com")

        # Assert
        assert result == server_record
        assert ids(bookmark_list) == [
            server_record.bookmark_id,
            older_bookmarks[0].bookmark_id,
            older_bookmarks[1].bookmark_id,
        ]
        assert fake_store.created[0].url == "https://example.com"
        assert fake_store.created[0].title == "Example"

    @pytest.mark.asyncio
    async def test_create_keeps_explicit_scheme(
        self, bookmark_list: BookmarkList, fake_store
    ):
        await bookmark_list.request_create("  Docs ", "http://docs.example.org/a?b=1")

        assert fake_store.created[0].url == "http://docs.example.org/a?b=1"
        assert fake_store.created[0].title == "Docs"

    @pytest.mark.asyncio
    async def test_create_prefixes_host_starting_with_http(
        self, bookmark_list: BookmarkList, fake_store
    ):
        await bookmark_list.request_create("Httpbin", "httpbin.org")

        assert fake_store.created[0].url == "https://httpbin.org"

    @pytest.mark.parametrize(
        "title,url,message",
        [
            ("", "example.com", "Both fields are required."),
            ("   ", "example.com", "Both fields are required."),
            ("Title", "", "Both fields are required."),
            ("Title", "not a url", "Please enter a valid URL."),
            ("Title", "ftp://x.org", "Please enter a valid URL."),
        ],
    )
    @pytest.mark.asyncio
    async def test_create_rejects_invalid_input_without_store_call(
        self, bookmark_list: BookmarkList, fake_store, older_bookmarks, title, url, message
    ):
        with pytest.raises(BookmarkValidationError, match=message):
            await bookmark_list.request_create(title, url)

        assert fake_store.created == []
        assert bookmark_list.bookmarks == older_bookmarks

    @pytest.mark.asyncio
    async def test_create_failure_leaves_state_unchanged(
        self, bookmark_list: BookmarkList, fake_store, older_bookmarks
    ):
        fake_store.fail_create = True

        with pytest.raises(BookmarkError, match="duplicate key"):
            await bookmark_list.request_create("Example", "example.com")

        assert bookmark_list.bookmarks == older_bookmarks

    @pytest.mark.asyncio
    async def test_feed_echo_after_create_keeps_one_entry(
        self, bookmark_list: BookmarkList, bookmark_factory, fake_store
    ):
        server_record = bookmark_factory()
        fake_store.next_record = server_record

        await bookmark_list.request_create("Example", "example.com")
        bookmark_list.apply_insert(server_record)

        matching = [
            b for b in bookmark_list.bookmarks
            if b.bookmark_id == server_record.bookmark_id
        ]
        assert len(matching) == 1


@pytest.mark.unit
class TestRequestDelete:
    @pytest.fixture
    def bookmark_list(self, fake_store, test_user: User, older_bookmarks) -> BookmarkList:
        fake_store.rows = list(older_bookmarks)
        bookmark_list = BookmarkList(fake_store, test_user.user_id)
        bookmark_list.initialize(older_bookmarks)
        return bookmark_list

    @pytest.mark.asyncio
    async def test_delete_removes_before_store_resolves(
        self, bookmark_list: BookmarkList, fake_store, older_bookmarks
    ):
        # Arrange
        target = older_bookmarks[1].bookmark_id
        release = asyncio.Event()
        original_delete = fake_store.delete_bookmark

        async def slow_delete(user_id, bookmark_id):
            await release.wait()
            await original_delete(user_id, bookmark_id)

        fake_store.delete_bookmark = slow_delete

        # Act
        task = asyncio.create_task(bookmark_list.request_delete(target))
        await asyncio.sleep(0)

        # Assert
        assert target not in bookmark_list
        release.set()
        await task
        assert ids(bookmark_list) == [older_bookmarks[0].bookmark_id]

    @pytest.mark.asyncio
    async def test_delete_failure_resyncs_to_snapshot(
        self, bookmark_list: BookmarkList, fake_store, older_bookmarks, bookmark_factory
    ):
        # Arrange
        target = older_bookmarks[1].bookmark_id
        added_elsewhere = bookmark_factory()
        fake_store.rows.append(added_elsewhere)
        fake_store.fail_delete = True

        # Act
        with pytest.raises(BookmarkError, match="timeout"):
            await bookmark_list.request_delete(target)

        # Assert
        assert ids(bookmark_list) == [
            added_elsewhere.bookmark_id,
            older_bookmarks[0].bookmark_id,
            older_bookmarks[1].bookmark_id,
        ]

    @pytest.mark.asyncio
    async def test_delete_failure_with_failing_resync_keeps_optimistic_state(
        self, bookmark_list: BookmarkList, fake_store, older_bookmarks
    ):
        fake_store.fail_delete = True
        fake_store.fail_list = True

        with pytest.raises(BookmarkError, match="timeout"):
            await bookmark_list.request_delete(older_bookmarks[0].bookmark_id)

        assert ids(bookmark_list) == [older_bookmarks[1].bookmark_id]

    @pytest.mark.asyncio
    async def test_delete_notification_after_delete_is_absorbed(
        self, bookmark_list: BookmarkList, older_bookmarks
    ):
        target = older_bookmarks[0].bookmark_id

        await bookmark_list.request_delete(target)
        bookmark_list.apply_delete(target)

        assert ids(bookmark_list) == [older_bookmarks[1].bookmark_id]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_load_propagates_fetch_failure(fake_store, test_user: User):
    fake_store.fail_list = True
    bookmark_list = BookmarkList(fake_store, test_user.user_id)

    with pytest.raises(BookmarkError):
        await bookmark_list.load()

    assert bookmark_list.bookmarks == []


def test_bookmark_list_membership(fake_store, test_user: User, bookmark_factory):
    bookmark: Bookmark = bookmark_factory()
    bookmark_list = BookmarkList(fake_store, test_user.user_id)
    bookmark_list.apply_insert(bookmark)

    assert bookmark.bookmark_id in bookmark_list
    assert uuid4() not in bookmark_list
