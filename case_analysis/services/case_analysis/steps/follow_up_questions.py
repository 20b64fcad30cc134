from case_analysis.prompts.case_analysis_prompts import (
    FOLLOW_UP_QUESTIONS_SYSTEM_PROMPT,
    FOLLOW_UP_QUESTIONS_USER_PROMPT,
)
from case_analysis.services.case_analysis.steps.base import (
    BaseAnalysisStep,
    PreparedPrompt,
    StepInput,
    StepRegistry,
)


@StepRegistry.register(8)
class FollowUpQuestionsStep(BaseAnalysisStep):
    system_prompt = FOLLOW_UP_QUESTIONS_SYSTEM_PROMPT
    max_output_tokens = 2000
    required_steps = (1,)

    async def prepare(self, step_input: StepInput) -> PreparedPrompt:
        return PreparedPrompt(
            user_prompt=FOLLOW_UP_QUESTIONS_USER_PROMPT.format(
                case_summary=step_input.content(1),
                irac_analysis=step_input.content(5, "No IRAC analysis available"),
                strengths_weaknesses=step_input.content(6, "No strengths/weaknesses analysis available"),
            )
        )
