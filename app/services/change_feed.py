import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import uuid4

from pydantic import UUID4

from app.models.bookmark import Bookmark, BookmarkChange, ChangeType

logger = logging.getLogger(__name__)

InsertCallback = Callable[[Bookmark], Any]
DeleteCallback = Callable[[UUID4], Any]


@dataclass(eq=False)
class Subscription:
    """Handle returned by :meth:`ChangeFeed.subscribe`.

    Attributes:
        user_id: Owner whose changes are delivered
        on_insert: Called with the new bookmark
        on_delete: Called with the deleted bookmark's ID
        subscription_id: Unique identifier, used in logs
    """

    user_id: UUID4
    on_insert: InsertCallback
    on_delete: DeleteCallback
    subscription_id: UUID4 = field(default_factory=uuid4)


class ChangeFeed:
    """In-process feed of bookmark inserts and deletes, scoped per owner.

    Every open dashboard session subscribes for its user. Store writes are
    published here so other sessions of the same user see them live.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[UUID4, list[Subscription]] = {}

    def subscribe(
        self,
        user_id: UUID4,
        on_insert: InsertCallback,
        on_delete: DeleteCallback,
    ) -> Subscription:
        """Register callbacks for one owner's changes.

        Args:
            user_id: Owner whose changes should be delivered
            on_insert: Callback for inserts, sync or async
            on_delete: Callback for deletes, sync or async

        Returns:
            A handle to pass to :meth:`unsubscribe`
        """
        subscription = Subscription(user_id, on_insert, on_delete)
        self._subscriptions.setdefault(user_id, []).append(subscription)
        logger.info(
            f"Subscription {subscription.subscription_id} opened for user {user_id}"
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscription. Unknown or already removed handles are ignored."""
        subscriptions = self._subscriptions.get(subscription.user_id)
        if not subscriptions or subscription not in subscriptions:
            return
        subscriptions.remove(subscription)
        if not subscriptions:
            del self._subscriptions[subscription.user_id]
        logger.info(
            f"Subscription {subscription.subscription_id} closed "
            f"for user {subscription.user_id}"
        )

    def subscriber_count(self, user_id: UUID4) -> int:
        return len(self._subscriptions.get(user_id, []))

    async def publish(self, change: BookmarkChange) -> None:
        """Deliver a change to every subscription of its owner.

        A failing callback is logged and does not stop delivery to the
        remaining subscriptions.

        Args:
            change: The insert or delete to deliver
        """
        # Copy so callbacks may unsubscribe while we iterate
        for subscription in list(self._subscriptions.get(change.user_id, [])):
            try:
                if change.event_type == ChangeType.DELETE:
                    result = subscription.on_delete(change.bookmark_id)
                elif change.new is not None:
                    result = subscription.on_insert(change.new)
                else:
                    logger.warning(
                        f"Dropping insert of {change.bookmark_id} without a record"
                    )
                    continue
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    f"Change callback failed for subscription "
                    f"{subscription.subscription_id}"
                )

    def close(self) -> None:
        """Drop every subscription."""
        self._subscriptions.clear()
