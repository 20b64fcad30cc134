"""Fixed layout of the nine-step case analysis."""

from typing import List

STEP_NAMES: List[str] = [
    "Case Summary",
    "Preliminary Analysis",
    "Texas Laws",
    "Case Law Research",
    "IRAC Analysis",
    "Strengths & Weaknesses",
    "Refined Analysis",
    "Follow-up Questions",
    "Law References",
]

TOTAL_STEPS = len(STEP_NAMES)
FINAL_STEP = TOTAL_STEPS

# Text saved to legal_analyses when a workflow completes, in order of preference
ANALYSIS_SOURCE_STEPS = (7, 9)

STUCK_WORKFLOW_ERROR = "Workflow stuck - cleaned up by system"
NO_CLIENT_CONTEXT = "No additional context provided"
NO_DOCUMENT_MATCHES = "No relevant Texas laws found in database."


def step_name(step_number: int) -> str:
    """Return the display name for a 1-based step number."""
    if not 1 <= step_number <= TOTAL_STEPS:
        raise ValueError(f"Step number must be between 1 and {TOTAL_STEPS}, got {step_number}")
    return STEP_NAMES[step_number - 1]
