"""Perplexity web research client."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from case_analysis.core.exceptions import APIClientError, ValidationError
from case_analysis.core.http_client import BaseHTTPClient
from case_analysis.prompts.case_analysis_prompts import (
    PERPLEXITY_LEGAL_RESEARCH_SYSTEM_PROMPT,
    PERPLEXITY_LEGAL_RESEARCH_USER_PROMPT,
)
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)

LEGAL_SEARCH_DOMAINS = [
    "justia.com",
    "caselaw.findlaw.com",
    "scholar.google.com",
    "courtlistener.com",
    "law.cornell.edu",
    "statutes.capitol.texas.gov",
]


class SearchType(str, Enum):
    LEGAL_RESEARCH = "legal-research"
    GENERAL = "general"


@dataclass
class ResearchResult:
    """Answer text plus the source URLs Perplexity cited."""

    content: str
    citations: List[str] = field(default_factory=list)
    model: Optional[str] = None
    search_type: SearchType = SearchType.GENERAL


class PerplexityClient:
    """Client for Perplexity's search-grounded chat completions."""

    def __init__(
        self,
        api_key: str,
        model: str = "sonar-pro",
        base_url: str = "https://api.perplexity.ai/chat/completions",
        timeout: int = 120,
        max_retries: int = 1,
        retry_delay: int = 2,
    ):
        self.model = model
        self.client = BaseHTTPClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )

    def build_payload(
        self,
        query: str,
        search_type: SearchType = SearchType.LEGAL_RESEARCH,
        context: Optional[str] = None,
    ) -> Dict[str, Any]:
        user_prompt = query
        if search_type == SearchType.LEGAL_RESEARCH:
            user_prompt = PERPLEXITY_LEGAL_RESEARCH_USER_PROMPT.format(query=query)

        if context:
            user_prompt += f"\n\nContext: {context}"

        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": PERPLEXITY_LEGAL_RESEARCH_SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": 4000,
            "temperature": 0.1,
            "top_p": 0.9,
            "return_citations": True,
            "return_images": False,
            "search_domain_filter": LEGAL_SEARCH_DOMAINS,
        }

    async def research(
        self,
        query: str,
        search_type: SearchType = SearchType.LEGAL_RESEARCH,
        context: Optional[str] = None,
    ) -> ResearchResult:
        """Run one research query.

        Args:
            query: Research question or case description
            search_type: Prompt variant to use
            context: Optional extra context appended to the query

        Returns:
            ResearchResult with the answer text and cited URLs

        Raises:
            ValidationError: If the query is empty
            APIClientError: If the API call fails or returns no answer
        """
        if not query or not query.strip():
            raise ValidationError("Research query is required")

        LOGGER.info(f"Perplexity {self.model} request for {search_type.value}: {query[:100]}...")

        response = await self.client.call_api(
            method="POST",
            payload=self.build_payload(query, search_type, context),
            headers={"Accept": "application/json"},
        )

        choices = response.get("choices") or []
        content = (choices[0].get("message") or {}).get("content", "") if choices else ""
        if not content:
            raise APIClientError("Perplexity returned no research content")

        return ResearchResult(
            content=content,
            citations=list(response.get("citations") or []),
            model=response.get("model", self.model),
            search_type=search_type,
        )
