import json
from typing import Any, List
from uuid import UUID

from case_analysis.prompts.case_analysis_prompts import (
    LAW_REFERENCES_SYSTEM_PROMPT,
    LAW_REFERENCES_USER_PROMPT,
)
from case_analysis.services.case_analysis.constants import NO_DOCUMENT_MATCHES
from case_analysis.services.case_analysis.steps.base import (
    BaseAnalysisStep,
    PreparedPrompt,
    StepInput,
    StepRegistry,
)
from case_analysis.services.case_analysis.workflow_manager import save_final_analysis
from case_analysis.utils.citations import extract_citations, merge_citations
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)


@StepRegistry.register(9)
class LawReferencesStep(BaseAnalysisStep):
    """Compile every authority cited during the analysis.

    Completing this step completes the workflow; failing it fails the workflow.
    """

    system_prompt = LAW_REFERENCES_SYSTEM_PROMPT
    max_output_tokens = 2000
    required_steps = (1,)

    async def prepare(self, step_input: StepInput) -> PreparedPrompt:
        stored: List[Any] = []
        for step in step_input.workflow.steps:
            if step.step_number < self.step_number and step.citations:
                stored.extend(step.citations)

        extracted: List[Any] = []
        for number in sorted(step_input.prior_content):
            extracted.extend(extract_citations(step_input.prior_content[number]))

        combined = step_input.combined(self.step_number)
        documents = await self.search_documents(step_input.content(1), step_input.workflow.client_id)
        document_citations = [
            {"type": "document", "id": str(doc.id), "title": doc.title, "url": doc.url}
            for doc in documents
        ]
        law_context = "\n\n".join(f"{doc.title}: {doc.content}" for doc in documents) or NO_DOCUMENT_MATCHES

        citations = merge_citations(stored, extracted, document_citations)
        return PreparedPrompt(
            user_prompt=LAW_REFERENCES_USER_PROMPT.format(
                combined_content=combined,
                citations=json.dumps(citations, indent=2, default=str),
                law_context=law_context,
            ),
            citations=citations,
        )

    async def on_workflow_completed(self, workflow_id: UUID) -> None:
        try:
            workflow = await self.workflow_repo.get_with_steps(workflow_id)
            if workflow is not None:
                await save_final_analysis(self.session, workflow)
        except Exception as e:
            await self.session.rollback()
            LOGGER.error(f"Failed to save final analysis for workflow {workflow_id}: {e}", exc_info=True)
