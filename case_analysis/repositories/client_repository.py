import uuid
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from case_analysis.database.models import Client, ClientMessage
from case_analysis.repositories.base_repository import BaseRepository


class ClientRepository(BaseRepository[Client]):
    """Read access to clients and their intake messages."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Client)

    async def get_recent_messages(self, client_id: uuid.UUID, limit: int = 10) -> List[str]:
        """Return the newest message bodies for a client, newest first."""
        query = (
            select(ClientMessage.message_content)
            .where(ClientMessage.client_id == client_id)
            .order_by(ClientMessage.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [content for content in result.scalars().all() if content]
