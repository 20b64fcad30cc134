"""Case law search endpoint backed by the CourtListener lookaside cache."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from case_analysis.core.context import AnalysisContext, get_analysis_context
from case_analysis.core.database import get_async_session as get_session
from case_analysis.core.exceptions import ValidationError
from case_analysis.schemas.case_analysis import CaseLawSearchRequest, CaseLawSearchResponse
from case_analysis.services.case_analysis.case_law_lookup import CaseLawLookup
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_case_law_lookup(
    db_session: Annotated[AsyncSession, Depends(get_session)],
    context: Annotated[AnalysisContext, Depends(get_analysis_context)],
) -> CaseLawLookup:
    """Dependency for the case law lookup."""
    return CaseLawLookup(
        db_session,
        context.case_search,
        jurisdiction=context.settings.case_search.default_jurisdiction,
    )


@router.post(
    "/case-law-search",
    response_model=CaseLawSearchResponse,
    response_model_by_alias=True,
    summary="Search court opinions, answering from cache when possible",
    operation_id="search_case_law",
)
async def search_case_law(
    request: CaseLawSearchRequest,
    lookup: Annotated[CaseLawLookup, Depends(get_case_law_lookup)],
) -> CaseLawSearchResponse:
    """Search CourtListener opinions for ``query``.

    Raises:
        ValidationError: Empty query
        ConfigurationError: Cache miss with no CourtListener token configured
        APIClientError: CourtListener failure on a cache miss
    """
    if not request.query or not request.query.strip():
        raise ValidationError("query is required")

    result = await lookup.search(request.query, request.parameters)
    LOGGER.info(
        f"Case law search returned {len(result.cases)} cases",
        extra={"cache_hit": result.cache_hit},
    )
    return CaseLawSearchResponse(
        cases=result.cases,
        cache_hit=result.cache_hit,
        total_results=result.total_results,
    )
