from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from case_analysis.database.models import CaseSearchCache, GlobalCase, utcnow
from case_analysis.repositories.base_repository import BaseRepository


class GlobalCaseRepository(BaseRepository[GlobalCase]):
    """Shared store of case-law opinions fetched from CourtListener."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, GlobalCase)

    async def get_by_courtlistener_ids(self, courtlistener_ids: List[str]) -> List[GlobalCase]:
        """Load cases by external id, preserving the order of ``courtlistener_ids``."""
        if not courtlistener_ids:
            return []

        query = select(GlobalCase).where(GlobalCase.courtlistener_id.in_(courtlistener_ids))
        result = await self.session.execute(query)
        by_id = {case.courtlistener_id: case for case in result.scalars().all()}
        return [by_id[cid] for cid in courtlistener_ids if cid in by_id]

    async def upsert_cases(self, cases: List[Dict[str, Any]], jurisdiction: str) -> List[GlobalCase]:
        """Insert new cases and bump the fetch counter of known ones.

        Args:
            cases: Case dicts as returned by the CourtListener client
            jurisdiction: Jurisdiction recorded on newly inserted cases

        Returns:
            Stored rows in input order
        """
        ids = [str(case["id"]) for case in cases if case.get("id") is not None]
        existing = {case.courtlistener_id: case for case in await self.get_by_courtlistener_ids(ids)}

        stored: List[GlobalCase] = []
        for case in cases:
            if case.get("id") is None:
                continue
            courtlistener_id = str(case["id"])
            row = existing.get(courtlistener_id)
            if row is None:
                row = GlobalCase(
                    courtlistener_id=courtlistener_id,
                    case_name=case.get("caseName") or "Unknown Case",
                    court=case.get("court"),
                    citation=case.get("citation"),
                    docket_number=case.get("docketNumber"),
                    date_filed=case.get("dateFiled"),
                    absolute_url=case.get("absolute_url"),
                    snippet=case.get("snippet"),
                    jurisdiction=jurisdiction,
                    api_fetch_count=1,
                )
                self.session.add(row)
                existing[courtlistener_id] = row
            else:
                row.api_fetch_count = (row.api_fetch_count or 0) + 1
                row.last_updated_at = utcnow()
            stored.append(row)

        await self.session.flush()
        return stored


class CaseSearchCacheRepository(BaseRepository[CaseSearchCache]):
    """Query-hash to result-id mapping for case-law searches."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, CaseSearchCache)

    async def get_by_hash(self, query_hash: str) -> Optional[CaseSearchCache]:
        query = select(CaseSearchCache).where(CaseSearchCache.query_hash == query_hash)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def record_hit(self, query_hash: str) -> None:
        stmt = (
            update(CaseSearchCache)
            .where(CaseSearchCache.query_hash == query_hash)
            .values(hit_count=CaseSearchCache.hit_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def save(
        self,
        query_hash: str,
        original_query: str,
        search_parameters: Dict[str, Any],
        result_case_ids: Sequence[str],
        total_results: int,
    ) -> CaseSearchCache:
        """Create or refresh the cache row for a query hash."""
        entry = await self.get_by_hash(query_hash)
        if entry is None:
            return await self.create(
                query_hash=query_hash,
                original_query=original_query,
                search_parameters=search_parameters,
                result_case_ids=list(result_case_ids),
                total_results=total_results,
                hit_count=0,
                cached_at=utcnow(),
            )

        entry.result_case_ids = list(result_case_ids)
        entry.total_results = total_results
        entry.search_parameters = search_parameters
        entry.cached_at = utcnow()
        await self.session.flush()
        return entry
