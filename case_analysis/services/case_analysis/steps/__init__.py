"""Step executors for the nine-step case analysis.

Importing this package registers every step with ``StepRegistry``.
"""

from case_analysis.services.case_analysis.steps.base import (
    BaseAnalysisStep,
    StepCompleted,
    StepFailed,
    StepOutcome,
    StepRegistry,
)
from case_analysis.services.case_analysis.steps.case_summary import CaseSummaryStep
from case_analysis.services.case_analysis.steps.preliminary_analysis import PreliminaryAnalysisStep
from case_analysis.services.case_analysis.steps.texas_laws import TexasLawsStep
from case_analysis.services.case_analysis.steps.case_law_research import CaseLawResearchStep
from case_analysis.services.case_analysis.steps.irac_analysis import IracAnalysisStep
from case_analysis.services.case_analysis.steps.strengths_weaknesses import StrengthsWeaknessesStep
from case_analysis.services.case_analysis.steps.refined_analysis import RefinedAnalysisStep
from case_analysis.services.case_analysis.steps.follow_up_questions import FollowUpQuestionsStep
from case_analysis.services.case_analysis.steps.law_references import LawReferencesStep

__all__ = [
    "BaseAnalysisStep",
    "StepCompleted",
    "StepFailed",
    "StepOutcome",
    "StepRegistry",
    "CaseSummaryStep",
    "PreliminaryAnalysisStep",
    "TexasLawsStep",
    "CaseLawResearchStep",
    "IracAnalysisStep",
    "StrengthsWeaknessesStep",
    "RefinedAnalysisStep",
    "FollowUpQuestionsStep",
    "LawReferencesStep",
]
