"""Query service — read-only access to messages (no bus involvement)."""

from sqlalchemy.ext.asyncio import AsyncSession

from msgboard.schemas.message import MessageRead
from msgboard.store import MessageStore


class MessageQueryService:
    """Initial-state reads for clients before they subscribe."""

    def __init__(self, db: AsyncSession):
        self.store = MessageStore(db)

    async def list_messages(self) -> list[MessageRead]:
        """All current messages, oldest first."""
        messages = await self.store.list_all()
        return [MessageRead.model_validate(m) for m in messages]
