"""Message store — durable CRUD for messages backed by SQL.

Learn: Every write commits before returning, so a value handed back by the
store is already visible to subsequent reads ("durable on return"). The
mutation service relies on this: it publishes only after the store call
resolves, and a failed commit raises before anything is published.

Database errors are rolled back and re-raised as StoreError so callers
never see SQLAlchemy exceptions.
"""

from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from msgboard.db.models import Message
from msgboard.errors import NotFoundError, StoreError


def parse_id(message_id) -> int:
    """Convert a wire id ("42") to the integer primary key.

    An id that isn't an integer can't match any row, so it is reported as
    not found rather than as a validation problem.
    """
    try:
        return int(message_id)
    except (TypeError, ValueError):
        raise NotFoundError(message_id) from None


class MessageStore:
    """Create/read/update/delete messages by id."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(f"commit failed: {e}") from e

    async def create(
        self, user: str, content: str, parent_id: Optional[str] = None
    ) -> Message:
        message = Message(user=user, content=content, parent_id=parent_id)
        try:
            self.db.add(message)
            await self.db.flush()  # get auto-generated id
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(f"create failed: {e}") from e
        await self._commit()
        return message

    async def get(self, message_id) -> Optional[Message]:
        pk = parse_id(message_id)
        try:
            result = await self.db.execute(select(Message).where(Message.id == pk))
        except SQLAlchemyError as e:
            raise StoreError(f"read failed: {e}") from e
        return result.scalars().first()

    async def list_all(self) -> list[Message]:
        """All messages in insertion order."""
        try:
            result = await self.db.execute(select(Message).order_by(Message.id))
        except SQLAlchemyError as e:
            raise StoreError(f"list failed: {e}") from e
        return list(result.scalars().all())

    async def update(self, message_id, user: str, content: str) -> Message:
        """Revise user and content. id, parent_id and created_at never change.

        Like delete, the write is an UPDATE ... WHERE id = ? decided by its
        row count, so a delete that lands between the read and the write
        surfaces as NotFoundError.
        """
        message = await self.get(message_id)
        if message is None:
            raise NotFoundError(message_id)
        try:
            result = await self.db.execute(
                update(Message)
                .where(Message.id == message.id)
                .values(user=user, content=content)
                .execution_options(synchronize_session="evaluate")
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(f"update failed: {e}") from e
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundError(message_id)
        await self._commit()
        return message

    async def delete(self, message_id) -> Message:
        """Remove a message and return its last-known state.

        Learn: The row is removed with a DELETE ... WHERE id = ? and the
        affected row count decides the outcome. If two deletes race for the
        same id the database serializes them: one removes the row, the other
        matches nothing and gets NotFoundError.
        """
        message = await self.get(message_id)
        if message is None:
            raise NotFoundError(message_id)
        try:
            result = await self.db.execute(
                delete(Message)
                .where(Message.id == message.id)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(f"delete failed: {e}") from e
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFoundError(message_id)
        await self._commit()
        self.db.expunge(message)
        return message
