"""Explicit dependencies handed to the analysis services."""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from case_analysis.core.case_search_client import CourtListenerClient
from case_analysis.core.config import Settings, settings as app_settings
from case_analysis.core.llm_client import LLMClient, create_llm_client
from case_analysis.core.research_client import PerplexityClient
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class AnalysisContext:
    """Settings and external clients used by step executors.

    Research and case search are optional. A step whose auxiliary client
    is missing proceeds without that context.
    """

    settings: Settings
    llm: LLMClient
    research: Optional[PerplexityClient] = None
    case_search: Optional[CourtListenerClient] = None


def build_analysis_context(settings: Settings) -> AnalysisContext:
    """Create every client from configuration."""
    research = None
    if settings.perplexity_api_key:
        research = PerplexityClient(
            api_key=settings.perplexity_api_key,
            model=settings.llm.perplexity_model,
            base_url=settings.llm.perplexity_api_url,
            timeout=settings.http_timeout,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay,
        )
    else:
        LOGGER.warning("PERPLEXITY_API_KEY not set; case law research will run without web research")

    case_search = None
    if settings.courtlistener_api_token:
        case_search = CourtListenerClient(
            api_token=settings.courtlistener_api_token,
            base_url=settings.case_search.courtlistener_api_url,
            timeout=settings.http_timeout,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay,
            result_limit=settings.case_search.result_limit,
        )
    else:
        LOGGER.warning("COURTLISTENER_API_TOKEN not set; case law lookups are disabled")

    return AnalysisContext(
        settings=settings,
        llm=create_llm_client(settings),
        research=research,
        case_search=case_search,
    )


@lru_cache(maxsize=1)
def get_analysis_context() -> AnalysisContext:
    """FastAPI dependency returning the process-wide context."""
    return build_analysis_context(app_settings)
