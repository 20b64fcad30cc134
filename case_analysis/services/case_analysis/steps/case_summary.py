from case_analysis.prompts.case_analysis_prompts import (
    CASE_SUMMARY_SYSTEM_PROMPT,
    CASE_SUMMARY_USER_PROMPT,
)
from case_analysis.repositories.client_repository import ClientRepository
from case_analysis.services.case_analysis.constants import NO_CLIENT_CONTEXT
from case_analysis.services.case_analysis.steps.base import (
    BaseAnalysisStep,
    PreparedPrompt,
    StepInput,
    StepRegistry,
)


@StepRegistry.register(1)
class CaseSummaryStep(BaseAnalysisStep):
    """Organize the client's intake messages into a factual case summary."""

    system_prompt = CASE_SUMMARY_SYSTEM_PROMPT
    max_output_tokens = 2000

    async def prepare(self, step_input: StepInput) -> PreparedPrompt:
        messages = await ClientRepository(self.session).get_recent_messages(
            step_input.workflow.client_id,
            limit=self.context.settings.analysis.client_message_limit,
        )
        # Newest first from the query; the prompt reads better chronologically
        client_context = "\n\n".join(reversed(messages)) or NO_CLIENT_CONTEXT

        return PreparedPrompt(user_prompt=CASE_SUMMARY_USER_PROMPT.format(client_context=client_context))
