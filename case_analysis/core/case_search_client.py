"""CourtListener opinion search client."""

from typing import Any, Dict, List, Optional

from case_analysis.core.exceptions import ConfigurationError, ValidationError
from case_analysis.core.http_client import BaseHTTPClient
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)

COURTLISTENER_SITE = "https://www.courtlistener.com"


class CourtListenerClient:
    """Search CourtListener's v4 API for court opinions."""

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://www.courtlistener.com/api/rest/v4",
        timeout: int = 60,
        max_retries: int = 1,
        retry_delay: int = 2,
        result_limit: int = 5,
    ):
        self.api_token = api_token
        self.result_limit = result_limit
        self.client = BaseHTTPClient(
            api_key=api_token,
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            auth_scheme="Token",
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token)

    @staticmethod
    def normalize_result(item: Dict[str, Any]) -> Dict[str, Any]:
        """Map one v4 search hit onto the case shape used across the service."""
        case_id = item.get("cluster_id") or item.get("id")
        absolute_url = item.get("absolute_url")
        citation = item.get("citation")
        if isinstance(citation, list):
            citation = citation[0] if citation else None

        return {
            "id": str(case_id) if case_id is not None else None,
            "caseName": item.get("caseName") or item.get("caseNameFull") or "Unknown Case",
            "court": item.get("court") or "Unknown Court",
            "citation": citation,
            "dateFiled": item.get("dateFiled") or "Unknown Date",
            "docketNumber": item.get("docketNumber") or "Unknown Docket",
            "snippet": item.get("snippet") or "",
            "absolute_url": (
                f"{COURTLISTENER_SITE}{absolute_url}"
                if absolute_url
                else f"{COURTLISTENER_SITE}/opinion/{case_id}/"
            ),
        }

    async def search_opinions(
        self,
        query: str,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Search opinions ordered by relevance.

        Args:
            query: Free-text query
            parameters: Extra query-string filters (e.g. ``court``, ``filed_after``)

        Returns:
            Dict with ``results`` (top hits, normalized) and ``count``

        Raises:
            ValidationError: If the query is empty
            ConfigurationError: If no API token is configured
            APIClientError: If the API call fails
        """
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        if not self.is_configured:
            raise ConfigurationError("CourtListener API token is not configured")

        params: Dict[str, Any] = {"q": query, "type": "o", "order_by": "score desc"}
        if parameters:
            params.update({key: value for key, value in parameters.items() if value is not None})

        LOGGER.info(f"Searching CourtListener for: {query[:100]}")
        data = await self.client.call_api(endpoint="/search/", method="GET", payload=params)

        hits: List[Dict[str, Any]] = data.get("results") or []
        results = [self.normalize_result(item) for item in hits[: self.result_limit]]
        return {"results": results, "count": data.get("count", len(hits))}
