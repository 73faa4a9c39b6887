"""Message service — mutations with exactly one event per success.

Learn: Every mutation follows the same three steps:
1. Validate input (raise ValidationError before touching anything)
2. Commit to the store (NotFoundError / StoreError propagate from here)
3. Publish the resulting snapshot on the matching topic

Step 3 only runs once step 2 has returned, so subscribers never see an
event for a write that didn't commit, and a failed write publishes
nothing. publish() doesn't suspend, so between the commit resolving and
the event being queued no other coroutine can run.

There is no locking here. Concurrent mutations of the same id are
serialized by the database (see MessageStore.delete).
"""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from msgboard.errors import ValidationError
from msgboard.realtime.bus import EventBus, Topic
from msgboard.schemas.message import MessageRead
from msgboard.store import MessageStore

logger = structlog.get_logger()


def _require(field: str, value: Optional[str]) -> None:
    if value is None or not value.strip():
        raise ValidationError(field)


class MessageService:
    """Business logic for posting, editing and deleting messages."""

    def __init__(self, db: AsyncSession, bus: EventBus):
        self.store = MessageStore(db)
        self.bus = bus

    async def post_message(
        self, user: str, content: str, parent_id: Optional[str] = None
    ) -> MessageRead:
        _require("user", user)
        _require("content", content)

        message = await self.store.create(user=user, content=content, parent_id=parent_id)
        snapshot = MessageRead.model_validate(message)

        delivered = self.bus.publish(Topic.MESSAGE_ADDED, snapshot)
        logger.info(
            "message.posted",
            message_id=snapshot.id,
            parent_id=parent_id,
            subscribers=delivered,
        )
        return snapshot

    async def update_message(self, message_id, user: str, content: str) -> MessageRead:
        _require("user", user)
        _require("content", content)

        message = await self.store.update(message_id, user=user, content=content)
        snapshot = MessageRead.model_validate(message)

        delivered = self.bus.publish(Topic.MESSAGE_UPDATED, snapshot)
        logger.info("message.updated", message_id=snapshot.id, subscribers=delivered)
        return snapshot

    async def delete_message(self, message_id) -> MessageRead:
        """Delete a message. The event carries its state just before removal."""
        message = await self.store.delete(message_id)
        snapshot = MessageRead.model_validate(message)

        delivered = self.bus.publish(Topic.MESSAGE_DELETED, snapshot)
        logger.info("message.deleted", message_id=snapshot.id, subscribers=delivered)
        return snapshot
