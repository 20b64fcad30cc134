from case_analysis.prompts.case_analysis_prompts import (
    STRENGTHS_WEAKNESSES_SYSTEM_PROMPT,
    STRENGTHS_WEAKNESSES_USER_PROMPT,
)
from case_analysis.services.case_analysis.steps.base import (
    BaseAnalysisStep,
    PreparedPrompt,
    StepInput,
    StepRegistry,
)


@StepRegistry.register(6)
class StrengthsWeaknessesStep(BaseAnalysisStep):
    system_prompt = STRENGTHS_WEAKNESSES_SYSTEM_PROMPT
    max_output_tokens = 2500
    required_steps = (1,)

    async def prepare(self, step_input: StepInput) -> PreparedPrompt:
        return PreparedPrompt(
            user_prompt=STRENGTHS_WEAKNESSES_USER_PROMPT.format(
                combined_content=step_input.combined(self.step_number)
            )
        )
