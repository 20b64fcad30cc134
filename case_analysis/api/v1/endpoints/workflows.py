"""Workflow lifecycle endpoints: manager actions, cleanup and server-side runs."""

from typing import Annotated, Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from case_analysis.core.context import AnalysisContext, get_analysis_context
from case_analysis.core.database import get_async_session as get_session
from case_analysis.core.exceptions import ValidationError, WorkflowNotFoundError
from case_analysis.repositories.workflow_repository import CaseAnalysisWorkflowRepository
from case_analysis.schemas.case_analysis import (
    CleanupStuckWorkflowsRequest,
    CleanupStuckWorkflowsResponse,
    CleanupWorkflowsRequest,
    CleanupWorkflowsResponse,
    CompleteWorkflowResponse,
    CreateWorkflowResponse,
    RunAnalysisRequest,
    RunAnalysisResponse,
    StepView,
    WorkflowManagerRequest,
    WorkflowStatusResponse,
    WorkflowView,
)
from case_analysis.services.case_analysis.runner import run_analysis_in_background
from case_analysis.services.case_analysis.workflow_manager import CaseAnalysisWorkflowManager
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


async def get_workflow_manager(
    db_session: Annotated[AsyncSession, Depends(get_session)],
    context: Annotated[AnalysisContext, Depends(get_analysis_context)],
) -> CaseAnalysisWorkflowManager:
    """Dependency for the workflow manager."""
    return CaseAnalysisWorkflowManager(db_session, context.settings)


@router.post(
    "/case-analysis-workflow-manager",
    response_model=Dict[str, Any],
    summary="Create, inspect or complete a case analysis workflow",
    operation_id="manage_case_analysis_workflow",
)
async def manage_workflow(
    request: WorkflowManagerRequest,
    manager: Annotated[CaseAnalysisWorkflowManager, Depends(get_workflow_manager)],
) -> Dict[str, Any]:
    """Dispatch one workflow manager action.

    Actions:
        create_workflow: new running workflow with nine pending steps
        get_workflow_status: workflow and its ordered steps
        complete_workflow: force completion and save the final analysis

    Raises:
        ValidationError: Missing action, clientId or workflowId, or unknown action
        NotFoundError: Unknown client or workflow
    """
    if not request.action:
        raise ValidationError("action is required")
    if request.action not in ("create_workflow", "get_workflow_status", "complete_workflow"):
        raise ValidationError("Invalid action")
    if not request.client_id:
        raise ValidationError("clientId is required")

    if request.action == "create_workflow":
        created = await manager.execute_create_workflow(request.client_id, request.case_id)
        return CreateWorkflowResponse(**created).model_dump(mode="json", by_alias=True)

    if not request.workflow_id:
        raise ValidationError("workflowId is required")

    if request.action == "get_workflow_status":
        workflow = await manager.execute_get_workflow_status(request.workflow_id, request.client_id)
        response = WorkflowStatusResponse(
            workflow=WorkflowView.model_validate(workflow),
            steps=[StepView.model_validate(step) for step in workflow.steps],
            current_step=workflow.current_step,
            total_steps=workflow.total_steps,
            status=workflow.status,
        )
        return response.model_dump(mode="json", by_alias=True)

    completed = await manager.execute_complete_workflow(request.workflow_id, request.client_id)
    return CompleteWorkflowResponse(**completed).model_dump(mode="json", by_alias=True)


@router.post(
    "/cleanup-workflows",
    response_model=CleanupWorkflowsResponse,
    response_model_by_alias=True,
    summary="Cancel every running workflow of a client",
    operation_id="cleanup_running_workflows",
)
async def cleanup_workflows(
    request: CleanupWorkflowsRequest,
    manager: Annotated[CaseAnalysisWorkflowManager, Depends(get_workflow_manager)],
) -> CleanupWorkflowsResponse:
    """Cancel running workflows so the client can start a fresh analysis."""
    if not request.client_id:
        raise ValidationError("clientId is required")

    result = await manager.execute_cancel_running_workflows(request.client_id)
    if result["cleaned"] == 0:
        return CleanupWorkflowsResponse(message="No running workflows found", cleaned=0)

    return CleanupWorkflowsResponse(
        message="Workflows cleaned up successfully",
        cleaned=result["cleaned"],
        workflows=result["workflows"],
    )


@router.post(
    "/cleanup-stuck-workflows",
    response_model=CleanupStuckWorkflowsResponse,
    response_model_by_alias=True,
    summary="Fail running workflows that have been stuck too long",
    operation_id="cleanup_stuck_workflows",
)
async def cleanup_stuck_workflows(
    request: CleanupStuckWorkflowsRequest,
    manager: Annotated[CaseAnalysisWorkflowManager, Depends(get_workflow_manager)],
) -> CleanupStuckWorkflowsResponse:
    if not request.client_id:
        raise ValidationError("clientId is required")

    result = await manager.execute_fail_stuck_workflows(
        request.client_id, request.older_than_minutes
    )
    return CleanupStuckWorkflowsResponse(
        cleaned_up=result["cleaned_up"],
        workflows=result["workflows"],
    )


@router.post(
    "/run-case-analysis",
    response_model=RunAnalysisResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Run the remaining steps of a workflow in the background",
    operation_id="run_case_analysis",
)
async def run_case_analysis(
    request: RunAnalysisRequest,
    background_tasks: BackgroundTasks,
    db_session: Annotated[AsyncSession, Depends(get_session)],
    context: Annotated[AnalysisContext, Depends(get_analysis_context)],
) -> RunAnalysisResponse:
    """Schedule every incomplete step of the workflow to run in order.

    The run stops at the first failed or rejected step; progress is visible
    through the workflow manager's ``get_workflow_status`` action.
    """
    if not request.workflow_id:
        raise ValidationError("workflowId is required")

    workflow = await CaseAnalysisWorkflowRepository(db_session).get_by_id(request.workflow_id)
    if workflow is None:
        raise WorkflowNotFoundError(f"Workflow {request.workflow_id} not found")

    background_tasks.add_task(run_analysis_in_background, request.workflow_id, context)
    LOGGER.info(f"Scheduled background analysis for workflow {request.workflow_id}")

    return RunAnalysisResponse(
        workflow_id=request.workflow_id,
        message="Case analysis scheduled",
    )
