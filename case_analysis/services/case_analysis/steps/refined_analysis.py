from case_analysis.prompts.case_analysis_prompts import (
    REFINED_ANALYSIS_SYSTEM_PROMPT,
    REFINED_ANALYSIS_USER_PROMPT,
)
from case_analysis.services.case_analysis.steps.base import (
    BaseAnalysisStep,
    PreparedPrompt,
    StepInput,
    StepRegistry,
)


@StepRegistry.register(7)
class RefinedAnalysisStep(BaseAnalysisStep):
    """Requirement-by-requirement synthesis of everything found so far."""

    system_prompt = REFINED_ANALYSIS_SYSTEM_PROMPT
    max_output_tokens = 2500
    required_steps = (1,)

    async def prepare(self, step_input: StepInput) -> PreparedPrompt:
        return PreparedPrompt(
            user_prompt=REFINED_ANALYSIS_USER_PROMPT.format(
                combined_content=step_input.combined(self.step_number)
            )
        )
