import logging
from typing import Any, Awaitable, Callable
from uuid import UUID

from pydantic import UUID4

from app.models.bookmark import Bookmark
from app.models.user import User
from app.services.change_feed import Subscription
from app.services.reconciler import BookmarkList
from app.services.store import BookmarkError, BookmarkStore
from app.utils.formatting import to_view

logger = logging.getLogger(__name__)

Send = Callable[[dict[str, Any]], Awaitable[None]]


class DashboardSession:
    """One open dashboard view of a signed-in user.

    Mounting loads the snapshot, subscribes to the user's changes and
    pushes the initial state; unmounting drops the subscription. Every
    frame sent to the view goes through ``send``.

    Use as an async context manager so the subscription cannot outlive
    the view::

        async with DashboardSession(store, user, websocket.send_json) as session:
            await session.handle_message(message)
    """

    def __init__(self, store: BookmarkStore, user: User, send: Send) -> None:
        self.store = store
        self.user = user
        self.send = send
        self.bookmarks = BookmarkList(store, user.user_id)
        self._subscription: Subscription | None = None

    async def __aenter__(self) -> "DashboardSession":
        await self.mount()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.unmount()

    async def mount(self) -> None:
        try:
            await self.bookmarks.load()
        except BookmarkError as e:
            logger.warning(f"Snapshot for user {self.user.user_id} failed: {e}")
            self.bookmarks.initialize([])
            await self.send_error(str(e))
        self._subscription = self.store.subscribe(
            self.user.user_id, self._on_insert, self._on_delete
        )
        try:
            await self.send_state()
        except BaseException:
            self.unmount()
            raise
        logger.info(f"Dashboard mounted for user {self.user.user_id}")

    def unmount(self) -> None:
        if self._subscription is not None:
            self.store.unsubscribe(self._subscription)
            self._subscription = None
            logger.info(f"Dashboard unmounted for user {self.user.user_id}")

    @property
    def mounted(self) -> bool:
        return self._subscription is not None

    async def _on_insert(self, bookmark: Bookmark) -> None:
        if self.bookmarks.apply_insert(bookmark):
            await self.send_state()

    async def _on_delete(self, bookmark_id: UUID4) -> None:
        if self.bookmarks.apply_delete(bookmark_id):
            await self.send_state()

    async def handle_message(self, message: dict[str, Any]) -> None:
        """Act on one user intent received from the view.

        Supported actions are ``create`` (``title``, ``url``), ``delete``
        (``bookmark_id``) and ``refresh``. Errors are reported back to the
        view as error frames; none of them ends the session.
        """
        action = message.get("action")
        try:
            if action == "create":
                await self.bookmarks.request_create(
                    self._text(message.get("title")), self._text(message.get("url"))
                )
                await self.send_state()
                await self.send({"type": "success", "message": "Bookmark added!"})
            elif action == "delete":
                bookmark_id = self._parse_id(message.get("bookmark_id"))
                if bookmark_id is None:
                    await self.send_error("Invalid bookmark id.")
                    return
                try:
                    await self.bookmarks.request_delete(bookmark_id)
                finally:
                    await self.send_state()
            elif action == "refresh":
                await self.bookmarks.load()
                await self.send_state()
            else:
                await self.send_error(f"Unknown action: {action}")
        except BookmarkError as e:
            await self.send_error(str(e))

    @staticmethod
    def _text(value: Any) -> str:
        # Non-string fields count as missing
        return value if isinstance(value, str) else ""

    @staticmethod
    def _parse_id(value: Any) -> UUID | None:
        try:
            return UUID(str(value))
        except ValueError:
            return None

    def state(self) -> dict[str, Any]:
        views = [to_view(b) for b in self.bookmarks.bookmarks]
        return {
            "type": "bookmarks",
            "data": {
                "count": len(views),
                "bookmarks": [v.model_dump(mode="json") for v in views],
            },
        }

    async def send_state(self) -> None:
        await self.send(self.state())

    async def send_error(self, message: str) -> None:
        await self.send({"type": "error", "message": message})
