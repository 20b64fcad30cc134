from case_analysis.prompts.case_analysis_prompts import (
    IRAC_ANALYSIS_SYSTEM_PROMPT,
    IRAC_ANALYSIS_USER_PROMPT,
)
from case_analysis.services.case_analysis.steps.base import (
    BaseAnalysisStep,
    PreparedPrompt,
    StepInput,
    StepRegistry,
)


@StepRegistry.register(5)
class IracAnalysisStep(BaseAnalysisStep):
    """Issue, Rule, Application, Conclusion synthesis over steps 1-4."""

    system_prompt = IRAC_ANALYSIS_SYSTEM_PROMPT
    max_output_tokens = 3000
    required_steps = (1,)

    async def prepare(self, step_input: StepInput) -> PreparedPrompt:
        return PreparedPrompt(
            user_prompt=IRAC_ANALYSIS_USER_PROMPT.format(
                case_summary=step_input.content(1),
                preliminary_analysis=step_input.content(2, "No preliminary analysis available"),
                texas_laws=step_input.content(3, "No Texas law research available"),
                case_law=step_input.content(4, "No case law research available"),
            )
        )
