"""Workflow manager for the nine-step case analysis."""

from datetime import timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from case_analysis.core.config import Settings
from case_analysis.core.exceptions import ClientNotFoundError, ValidationError, WorkflowNotFoundError
from case_analysis.database.models import CaseAnalysisWorkflow, StepStatus, WorkflowStatus, utcnow
from case_analysis.repositories.client_repository import ClientRepository
from case_analysis.repositories.legal_analysis_repository import LegalAnalysisRepository
from case_analysis.repositories.workflow_repository import (
    CaseAnalysisStepRepository,
    CaseAnalysisWorkflowRepository,
)
from case_analysis.services.base_service import BaseService
from case_analysis.services.case_analysis.constants import (
    ANALYSIS_SOURCE_STEPS,
    FINAL_STEP,
    STEP_NAMES,
    STUCK_WORKFLOW_ERROR,
    TOTAL_STEPS,
)
from case_analysis.services.case_analysis.duplicate_detection import content_hash, find_duplicate
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)


async def save_final_analysis(session: AsyncSession, workflow: CaseAnalysisWorkflow) -> bool:
    """Store the workflow's final analysis text in ``legal_analyses``.

    Uses the refined analysis (step 7) or, failing that, the law references
    (step 9). Nothing is stored when no such text exists or when the client
    already has a duplicate of it.

    Returns:
        True if a new row was written
    """
    contents = {
        step.step_number: step.content
        for step in workflow.steps
        if step.status == StepStatus.COMPLETED.value and step.content
    }
    text = next((contents[number] for number in ANALYSIS_SOURCE_STEPS if number in contents), None)
    if not text:
        LOGGER.info(f"Workflow {workflow.id} has no final analysis text to save")
        return False

    repo = LegalAnalysisRepository(session)
    existing = await repo.list_for_client(workflow.client_id, case_id=workflow.case_id)
    if find_duplicate(text, (analysis.content for analysis in existing)) is not None:
        LOGGER.info(f"Skipping duplicate analysis for workflow {workflow.id}")
        return False

    await repo.create(
        client_id=workflow.client_id,
        case_id=workflow.case_id,
        workflow_id=workflow.id,
        analysis_type="case-analysis",
        content=text,
        content_hash=content_hash(text),
    )
    await session.commit()
    return True


class CaseAnalysisWorkflowManager(BaseService):
    """Creates, inspects, completes and cleans up analysis workflows.

    Extends BaseService; ``run`` dispatches on ``action`` and every public
    ``execute_*`` method goes through ``BaseService.execute``.
    """

    ACTIONS = (
        "create_workflow",
        "get_workflow_status",
        "complete_workflow",
        "cancel_running_workflows",
        "fail_stuck_workflows",
    )

    def __init__(self, session: AsyncSession, settings: Settings):
        super().__init__(session)
        self.settings = settings
        self.client_repo = ClientRepository(session)
        self.workflow_repo = CaseAnalysisWorkflowRepository(session)
        self.step_repo = CaseAnalysisStepRepository(session)

    def validate(self, *args, **kwargs):
        action = kwargs.get("action")
        if action not in self.ACTIONS:
            raise ValidationError("Invalid action")

        if action in ("create_workflow", "cancel_running_workflows", "fail_stuck_workflows"):
            if not kwargs.get("client_id"):
                raise ValidationError("clientId is required")
        else:
            if not kwargs.get("workflow_id"):
                raise ValidationError("workflowId is required")

    async def run(self, *args, **kwargs) -> Any:
        action = kwargs.get("action")

        if action == "create_workflow":
            return await self._create_workflow(kwargs["client_id"], kwargs.get("case_id"))
        elif action == "get_workflow_status":
            return await self._get_workflow_status(kwargs["workflow_id"], kwargs.get("client_id"))
        elif action == "complete_workflow":
            return await self._complete_workflow(kwargs["workflow_id"], kwargs.get("client_id"))
        elif action == "cancel_running_workflows":
            return await self._cancel_running_workflows(kwargs["client_id"])
        elif action == "fail_stuck_workflows":
            return await self._fail_stuck_workflows(
                kwargs["client_id"], kwargs.get("older_than_minutes")
            )
        else:
            raise ValidationError("Invalid action")

    async def execute_create_workflow(
        self, client_id: UUID, case_id: Optional[UUID] = None
    ) -> Dict[str, Any]:
        """Create a running workflow and its nine pending steps.

        Both inserts commit together; on any failure nothing is persisted.

        Raises:
            ClientNotFoundError: If the client does not exist
        """
        return await self.execute(action="create_workflow", client_id=client_id, case_id=case_id)

    async def execute_get_workflow_status(
        self, workflow_id: UUID, client_id: Optional[UUID] = None
    ) -> CaseAnalysisWorkflow:
        """Return the workflow with its steps ordered by step number.

        Raises:
            WorkflowNotFoundError: If the workflow does not exist or belongs to another client
        """
        return await self.execute(
            action="get_workflow_status", workflow_id=workflow_id, client_id=client_id
        )

    async def execute_complete_workflow(
        self, workflow_id: UUID, client_id: Optional[UUID] = None
    ) -> Dict[str, Any]:
        """Force a workflow to completed. Safe to call repeatedly."""
        return await self.execute(
            action="complete_workflow", workflow_id=workflow_id, client_id=client_id
        )

    async def execute_cancel_running_workflows(self, client_id: UUID) -> Dict[str, Any]:
        """Cancel every running workflow of a client."""
        return await self.execute(action="cancel_running_workflows", client_id=client_id)

    async def execute_fail_stuck_workflows(
        self, client_id: UUID, older_than_minutes: Optional[int] = None
    ) -> Dict[str, Any]:
        """Fail running workflows of a client that started too long ago."""
        return await self.execute(
            action="fail_stuck_workflows",
            client_id=client_id,
            older_than_minutes=older_than_minutes,
        )

    async def _create_workflow(self, client_id: UUID, case_id: Optional[UUID]) -> Dict[str, Any]:
        client = await self.client_repo.get_by_id(client_id)
        if client is None:
            raise ClientNotFoundError(f"Client {client_id} not found")

        workflow = await self.workflow_repo.create_workflow(
            client_id=client_id,
            case_id=case_id,
            total_steps=TOTAL_STEPS,
            metadata={
                "created_by": self.settings.analysis.created_by,
                "case_type": client.case_type or self.settings.analysis.case_type,
            },
        )
        await self.step_repo.create_steps(workflow.id, STEP_NAMES)
        await self.session.commit()

        LOGGER.info(f"Created case analysis workflow {workflow.id} for client {client_id}")
        return {
            "workflow_id": workflow.id,
            "current_step": 1,
            "total_steps": TOTAL_STEPS,
            "status": WorkflowStatus.RUNNING.value,
        }

    async def _get_workflow_status(
        self, workflow_id: UUID, client_id: Optional[UUID] = None
    ) -> CaseAnalysisWorkflow:
        workflow = await self.workflow_repo.get_with_steps(workflow_id)
        if workflow is None or (client_id is not None and workflow.client_id != client_id):
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found")
        return workflow

    async def _complete_workflow(
        self, workflow_id: UUID, client_id: Optional[UUID] = None
    ) -> Dict[str, Any]:
        workflow = await self._get_workflow_status(workflow_id, client_id)

        if workflow.status != WorkflowStatus.COMPLETED.value or workflow.current_step != FINAL_STEP:
            await self.workflow_repo.mark_completed(workflow_id, FINAL_STEP)
            await self.session.commit()
            LOGGER.info(f"Workflow {workflow_id} marked completed")

        analysis_saved = False
        try:
            analysis_saved = await save_final_analysis(self.session, workflow)
        except Exception as e:
            # The completion itself is already committed
            await self.session.rollback()
            LOGGER.error(f"Failed to save final analysis for workflow {workflow_id}: {e}", exc_info=True)

        return {
            "workflow_id": workflow_id,
            "status": WorkflowStatus.COMPLETED.value,
            "analysis_saved": analysis_saved,
        }

    async def _cancel_running_workflows(self, client_id: UUID) -> Dict[str, Any]:
        running = await self.workflow_repo.list_running(client_id)
        if not running:
            return {"cleaned": 0, "workflows": []}

        ids = [workflow.id for workflow in running]
        cleaned = await self.workflow_repo.set_status(ids, WorkflowStatus.CANCELLED)
        await self.session.commit()

        LOGGER.info(f"Cancelled {cleaned} running workflows for client {client_id}")
        return {
            "cleaned": cleaned,
            "workflows": [
                {"id": workflow_id, "status": WorkflowStatus.CANCELLED.value} for workflow_id in ids
            ],
        }

    async def _fail_stuck_workflows(
        self, client_id: UUID, older_than_minutes: Optional[int]
    ) -> Dict[str, Any]:
        minutes = older_than_minutes or self.settings.analysis.stuck_workflow_minutes
        cutoff = utcnow() - timedelta(minutes=minutes)

        stuck = await self.workflow_repo.list_running(client_id, started_before=cutoff)
        if not stuck:
            return {"cleaned_up": 0, "workflows": []}

        ids = [workflow.id for workflow in stuck]
        cleaned = await self.workflow_repo.set_status(
            ids, WorkflowStatus.FAILED, error_message=STUCK_WORKFLOW_ERROR
        )
        await self.step_repo.fail_running(ids, STUCK_WORKFLOW_ERROR)
        await self.session.commit()

        LOGGER.info(f"Failed {cleaned} stuck workflows (older than {minutes} min) for client {client_id}")
        return {
            "cleaned_up": cleaned,
            "workflows": [
                {"id": workflow_id, "status": WorkflowStatus.FAILED.value} for workflow_id in ids
            ],
        }
