from case_analysis.prompts.case_analysis_prompts import (
    PRELIMINARY_ANALYSIS_SYSTEM_PROMPT,
    PRELIMINARY_ANALYSIS_USER_PROMPT,
)
from case_analysis.services.case_analysis.steps.base import (
    BaseAnalysisStep,
    PreparedPrompt,
    StepInput,
    StepRegistry,
)


@StepRegistry.register(2)
class PreliminaryAnalysisStep(BaseAnalysisStep):
    """Spot issues and causes of action from the case summary."""

    system_prompt = PRELIMINARY_ANALYSIS_SYSTEM_PROMPT
    max_output_tokens = 2500
    required_steps = (1,)

    async def prepare(self, step_input: StepInput) -> PreparedPrompt:
        return PreparedPrompt(
            user_prompt=PRELIMINARY_ANALYSIS_USER_PROMPT.format(case_summary=step_input.content(1))
        )
