"""Server-side driver that runs the remaining steps of a workflow in order."""

from typing import List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from case_analysis.core.context import AnalysisContext
from case_analysis.core.database import async_session_maker
from case_analysis.core.exceptions import AppError, WorkflowNotFoundError
from case_analysis.database.models import StepStatus
from case_analysis.repositories.workflow_repository import CaseAnalysisWorkflowRepository
from case_analysis.services.case_analysis.constants import FINAL_STEP
from case_analysis.services.case_analysis.steps import StepFailed, StepOutcome, StepRegistry
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AnalysisRunner:
    """Execute steps sequentially, stopping at the first failure or rejection."""

    def __init__(self, session: AsyncSession, context: AnalysisContext):
        self.session = session
        self.context = context
        self.workflow_repo = CaseAnalysisWorkflowRepository(session)

    async def run(self, workflow_id: UUID) -> List[StepOutcome]:
        """Run every step that is not yet completed.

        Returns:
            Outcomes of the steps attempted, in order

        Raises:
            WorkflowNotFoundError: If the workflow does not exist
        """
        workflow = await self.workflow_repo.get_with_steps(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found")

        pending = [
            step.step_number
            for step in workflow.steps
            if step.status != StepStatus.COMPLETED.value and step.step_number <= FINAL_STEP
        ]
        await self.session.commit()

        outcomes: List[StepOutcome] = []
        for step_number in pending:
            executor = StepRegistry.create(step_number, self.session, self.context)
            try:
                outcome = await executor.execute(workflow_id=workflow_id)
            except AppError as e:
                LOGGER.warning(f"Runner stopped before step {step_number} of workflow {workflow_id}: {e}")
                break

            outcomes.append(outcome)
            if isinstance(outcome, StepFailed):
                LOGGER.warning(
                    f"Runner stopped at failed step {step_number} of workflow {workflow_id}: "
                    f"{outcome.error_message}"
                )
                break

        return outcomes


async def run_analysis_in_background(workflow_id: UUID, context: AnalysisContext) -> None:
    """Background-task entry point with its own database session."""
    async with async_session_maker() as session:
        try:
            outcomes = await AnalysisRunner(session, context).run(workflow_id)
            LOGGER.info(f"Background analysis of workflow {workflow_id} ran {len(outcomes)} steps")
        except Exception as e:
            LOGGER.error(f"Background analysis of workflow {workflow_id} failed: {e}", exc_info=True)
