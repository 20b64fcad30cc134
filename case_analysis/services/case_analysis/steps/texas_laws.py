from case_analysis.prompts.case_analysis_prompts import (
    TEXAS_LAWS_SYSTEM_PROMPT,
    TEXAS_LAWS_USER_PROMPT,
)
from case_analysis.services.case_analysis.constants import NO_DOCUMENT_MATCHES
from case_analysis.services.case_analysis.steps.base import (
    BaseAnalysisStep,
    PreparedPrompt,
    StepInput,
    StepRegistry,
)


@StepRegistry.register(3)
class TexasLawsStep(BaseAnalysisStep):
    """Identify applicable Texas statutes, grounded on stored law documents."""

    system_prompt = TEXAS_LAWS_SYSTEM_PROMPT
    max_output_tokens = 2000
    required_steps = (1,)

    async def prepare(self, step_input: StepInput) -> PreparedPrompt:
        case_summary = step_input.content(1)
        documents = await self.search_documents(case_summary, step_input.workflow.client_id)

        law_context = "\n\n".join(f"{doc.title}: {doc.content}" for doc in documents) or NO_DOCUMENT_MATCHES
        citations = [
            {"type": "document", "id": str(doc.id), "title": doc.title, "url": doc.url}
            for doc in documents
        ]

        return PreparedPrompt(
            user_prompt=TEXAS_LAWS_USER_PROMPT.format(
                case_summary=case_summary,
                preliminary_analysis=step_input.content(2, "No preliminary analysis available"),
                law_context=law_context,
            ),
            citations=citations,
        )
