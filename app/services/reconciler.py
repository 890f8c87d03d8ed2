import logging

from pydantic import UUID4, ValidationError

from app.models.bookmark import Bookmark, BookmarkCreate
from app.services.store import BookmarkError, BookmarkStore, BookmarkValidationError

logger = logging.getLogger(__name__)


class BookmarkList:
    """The bookmarks visible in one session, kept consistent with the store.

    Three sources feed this list: the initial snapshot, the user's own
    create/delete requests, and change notifications from other sessions
    (or echoes of this session's writes). ``apply_insert`` and
    ``apply_delete`` are idempotent, so a change that arrives both as a
    direct response and through the feed, or that is redelivered, is
    applied once.

    Attributes:
        store: Backend the list reads from and writes to
        user_id: Owner whose bookmarks are shown
    """

    def __init__(self, store: BookmarkStore, user_id: UUID4) -> None:
        self.store = store
        self.user_id = user_id
        self._bookmarks: list[Bookmark] = []

    @property
    def bookmarks(self) -> list[Bookmark]:
        """A copy of the current list, newest first."""
        return list(self._bookmarks)

    def __len__(self) -> int:
        return len(self._bookmarks)

    def __contains__(self, bookmark_id: object) -> bool:
        return any(b.bookmark_id == bookmark_id for b in self._bookmarks)

    def initialize(self, snapshot: list[Bookmark]) -> None:
        """Replace the list with a snapshot already sorted newest first."""
        self._bookmarks = list(snapshot)

    async def load(self) -> None:
        """Fetch a fresh snapshot from the store and initialize with it.

        Raises:
            BookmarkError: If the snapshot cannot be fetched
        """
        self.initialize(await self.store.list_bookmarks(self.user_id))

    def apply_insert(self, candidate: Bookmark) -> bool:
        """Prepend a bookmark unless one with the same ID is already shown.

        Returns:
            True if the list changed
        """
        if candidate.bookmark_id in self:
            return False
        self._bookmarks.insert(0, candidate)
        return True

    def apply_delete(self, bookmark_id: UUID4) -> bool:
        """Remove the bookmark with this ID, if shown.

        Returns:
            True if the list changed
        """
        remaining = [b for b in self._bookmarks if b.bookmark_id != bookmark_id]
        if len(remaining) == len(self._bookmarks):
            return False
        self._bookmarks = remaining
        return True

    async def request_create(self, title: str, url: str) -> Bookmark:
        """Validate and create a bookmark, then show the stored record.

        Nothing is sent to the store when validation fails. The list is
        left untouched when the store rejects the bookmark.

        Args:
            title: Display label as typed
            url: URL as typed, ``https://`` is prefixed when no scheme is given

        Returns:
            The bookmark as stored

        Raises:
            BookmarkValidationError: If the title or URL is rejected
            BookmarkError: If the store fails to create the bookmark
        """
        if not title.strip() or not url.strip():
            raise BookmarkValidationError("Both fields are required.")
        try:
            bookmark = BookmarkCreate(title=title, url=url)
        except ValidationError:
            raise BookmarkValidationError("Please enter a valid URL.")

        created = await self.store.create_bookmark(self.user_id, bookmark)
        self.apply_insert(created)
        return created

    async def request_delete(self, bookmark_id: UUID4) -> None:
        """Remove a bookmark right away, then delete it in the store.

        If the store call fails the whole list is reloaded from the store
        instead of restoring the single entry, and the error is re-raised
        for the caller to report.

        Args:
            bookmark_id: ID of the bookmark to delete

        Raises:
            BookmarkError: If the store fails to delete the bookmark
        """
        self.apply_delete(bookmark_id)
        try:
            await self.store.delete_bookmark(self.user_id, bookmark_id)
        except BookmarkError as e:
            logger.warning(f"Delete of bookmark {bookmark_id} failed: {e}")
            try:
                await self.load()
            except BookmarkError as resync_error:
                logger.warning(f"Resync after failed delete failed: {resync_error}")
            raise
