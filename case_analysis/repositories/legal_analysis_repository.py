import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from case_analysis.database.models import LegalAnalysis
from case_analysis.repositories.base_repository import BaseRepository


class LegalAnalysisRepository(BaseRepository[LegalAnalysis]):
    """Saved analyses per client."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, LegalAnalysis)

    async def list_for_client(
        self,
        client_id: uuid.UUID,
        case_id: Optional[uuid.UUID] = None,
        limit: int = 50,
    ) -> List[LegalAnalysis]:
        """Most recent analyses of a client, optionally scoped to one case."""
        query = select(LegalAnalysis).where(LegalAnalysis.client_id == client_id)
        if case_id is not None:
            query = query.where(LegalAnalysis.case_id == case_id)

        query = query.order_by(LegalAnalysis.created_at.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())
