from typing import Any, Dict, List, Optional

from case_analysis.core.research_client import ResearchResult, SearchType
from case_analysis.prompts.case_analysis_prompts import (
    CASE_LAW_RESEARCH_SYSTEM_PROMPT,
    CASE_LAW_RESEARCH_USER_PROMPT,
    NO_MATCHED_CASES,
    NO_RESEARCH_AVAILABLE,
)
from case_analysis.repositories.document_repository import extract_search_terms
from case_analysis.services.case_analysis.case_law_lookup import CaseLawLookup
from case_analysis.services.case_analysis.steps.base import (
    BaseAnalysisStep,
    PreparedPrompt,
    StepInput,
    StepRegistry,
)
from case_analysis.utils.citations import merge_citations
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Research queries are built from the opening of each earlier output
RESEARCH_EXCERPT_CHARS = 1500


@StepRegistry.register(4)
class CaseLawResearchStep(BaseAnalysisStep):
    """Research precedent on the web and in CourtListener, then organize it."""

    system_prompt = CASE_LAW_RESEARCH_SYSTEM_PROMPT
    max_output_tokens = 2500
    required_steps = (1,)

    async def _research(self, step_input: StepInput) -> Optional[ResearchResult]:
        if self.context.research is None:
            return None

        query = (
            f"Texas case law relevant to the following matter.\n\n"
            f"Facts: {step_input.content(1)[:RESEARCH_EXCERPT_CHARS]}\n\n"
            f"Issues: {step_input.content(2)[:RESEARCH_EXCERPT_CHARS]}"
        )
        try:
            return await self.context.research.research(query, SearchType.LEGAL_RESEARCH)
        except Exception as e:
            LOGGER.warning(f"Case law research failed, continuing without it: {e}")
            return None

    async def _matched_cases(self, step_input: StepInput) -> List[Dict[str, Any]]:
        if self.context.case_search is None:
            return []

        terms = extract_search_terms(f"{step_input.content(2)} {step_input.content(1)}", max_terms=6)
        if not terms:
            return []

        lookup = CaseLawLookup(
            self.session,
            self.context.case_search,
            jurisdiction=self.context.settings.case_search.default_jurisdiction,
        )
        try:
            result = await lookup.search(" ".join(terms))
            return result.cases
        except Exception as e:
            await self.session.rollback()
            LOGGER.warning(f"Case law lookup failed, continuing without it: {e}")
            return []

    async def prepare(self, step_input: StepInput) -> PreparedPrompt:
        research = await self._research(step_input)
        cases = await self._matched_cases(step_input)

        matched_cases = "\n".join(
            f"- {case['caseName']} ({case.get('court')}, {case.get('dateFiled')}): {case.get('absolute_url')}"
            for case in cases
        ) or NO_MATCHED_CASES

        citations = merge_citations(
            [{"type": "web", "url": url} for url in (research.citations if research else [])],
            [
                {
                    "type": "case",
                    "id": case["id"],
                    "caseName": case["caseName"],
                    "court": case.get("court"),
                    "dateFiled": case.get("dateFiled"),
                    "url": case.get("absolute_url"),
                }
                for case in cases
            ],
        )

        return PreparedPrompt(
            user_prompt=CASE_LAW_RESEARCH_USER_PROMPT.format(
                case_summary=step_input.content(1),
                preliminary_analysis=step_input.content(2, "No preliminary analysis available"),
                texas_laws=step_input.content(3, "No Texas law research available"),
                research_content=research.content if research else NO_RESEARCH_AVAILABLE,
                matched_cases=matched_cases,
            ),
            citations=citations,
        )
