"""Lookaside cache in front of CourtListener opinion search."""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from case_analysis.core.case_search_client import CourtListenerClient
from case_analysis.core.exceptions import ConfigurationError, ValidationError
from case_analysis.database.models import GlobalCase
from case_analysis.repositories.case_search_repository import (
    CaseSearchCacheRepository,
    GlobalCaseRepository,
)
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)


def query_hash(query: str, parameters: Optional[Dict[str, Any]] = None) -> str:
    """MD5 of the normalized query and its parameters.

    The query is trimmed and lower-cased; parameter order does not matter.
    """
    payload = {"query": query.strip().lower(), **(parameters or {})}
    return hashlib.md5(json.dumps(payload, sort_keys=True, default=str).encode("utf-8")).hexdigest()


def case_to_dict(case: GlobalCase) -> Dict[str, Any]:
    return {
        "id": case.courtlistener_id,
        "caseName": case.case_name,
        "court": case.court,
        "citation": case.citation,
        "dateFiled": case.date_filed,
        "docketNumber": case.docket_number,
        "snippet": case.snippet or "",
        "absolute_url": case.absolute_url,
    }


@dataclass
class CaseLawSearchResult:
    cases: List[Dict[str, Any]] = field(default_factory=list)
    cache_hit: bool = False
    total_results: int = 0


class CaseLawLookup:
    """Check the search cache first, fall back to CourtListener on a miss.

    A hit is a cache row whose cases are still present in the shared case
    table. On a miss the fetched cases are stored and the query mapping is
    recorded; failures while storing are logged and the fetched cases are
    still returned. Cache rows never expire.
    """

    def __init__(
        self,
        session: AsyncSession,
        client: Optional[CourtListenerClient],
        jurisdiction: str = "Texas",
    ):
        self.session = session
        self.client = client
        self.jurisdiction = jurisdiction
        self.cache_repo = CaseSearchCacheRepository(session)
        self.case_repo = GlobalCaseRepository(session)

    async def search(
        self,
        query: str,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> CaseLawSearchResult:
        """Find opinions matching ``query``.

        Raises:
            ValidationError: If the query is empty
            ConfigurationError: On a cache miss with no CourtListener client
            APIClientError: If CourtListener fails on a cache miss
        """
        if not query or not query.strip():
            raise ValidationError("query is required")

        parameters = parameters or {}
        key = query_hash(query, parameters)

        cached = await self._lookup(key)
        if cached is not None:
            return cached

        if self.client is None:
            raise ConfigurationError("CourtListener API token is not configured")

        response = await self.client.search_opinions(query, parameters)
        cases = [case for case in response["results"] if case.get("id")]
        total = int(response.get("count") or len(cases))

        await self._store(key, query, parameters, cases, total)
        return CaseLawSearchResult(cases=cases, cache_hit=False, total_results=total)

    async def _lookup(self, key: str) -> Optional[CaseLawSearchResult]:
        entry = await self.cache_repo.get_by_hash(key)
        if entry is None or not entry.result_case_ids:
            return None

        cases = await self.case_repo.get_by_courtlistener_ids([str(cid) for cid in entry.result_case_ids])
        if not cases:
            return None

        try:
            await self.cache_repo.record_hit(key)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            LOGGER.warning(f"Failed to record cache hit for {key}: {e}")

        LOGGER.info(f"Case law cache hit ({len(cases)} cases) for {key}")
        return CaseLawSearchResult(
            cases=[case_to_dict(case) for case in cases],
            cache_hit=True,
            total_results=entry.total_results,
        )

    async def _store(
        self,
        key: str,
        query: str,
        parameters: Dict[str, Any],
        cases: List[Dict[str, Any]],
        total: int,
    ) -> None:
        try:
            await self.case_repo.upsert_cases(cases, self.jurisdiction)
            await self.cache_repo.save(
                query_hash=key,
                original_query=query,
                search_parameters=parameters,
                result_case_ids=[str(case["id"]) for case in cases],
                total_results=total,
            )
            await self.session.commit()
            LOGGER.info(f"Cached {len(cases)} cases for query {key}")
        except Exception as e:
            await self.session.rollback()
            LOGGER.error(f"Failed to cache case law results for {key}: {e}", exc_info=True)
