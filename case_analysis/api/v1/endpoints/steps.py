"""Per-step execution endpoints, one route for each of the nine steps."""

from typing import Annotated, Any, Callable, Union

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from case_analysis.core.context import AnalysisContext, get_analysis_context
from case_analysis.core.database import get_async_session as get_session
from case_analysis.core.exceptions import ValidationError
from case_analysis.schemas.case_analysis import StepFailureResponse, StepRequest, StepResponse
from case_analysis.services.case_analysis.constants import step_name
from case_analysis.services.case_analysis.steps import StepCompleted, StepRegistry
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


async def execute_step(
    step_number: int,
    request: StepRequest,
    session: AsyncSession,
    context: AnalysisContext,
) -> Union[StepResponse, JSONResponse]:
    """Run one step and shape its outcome for the wire.

    A failed step answers 500 with the step's error message.
    """
    if not request.workflow_id:
        raise ValidationError("workflowId is required")
    if request.step_number is not None and request.step_number != step_number:
        raise ValidationError(
            f"stepNumber {request.step_number} does not match endpoint step {step_number}"
        )

    executor = StepRegistry.create(step_number, session, context)
    outcome = await executor.execute(
        workflow_id=request.workflow_id,
        previous_content=request.previous_content,
        all_previous_content=request.all_previous_content,
    )

    if isinstance(outcome, StepCompleted):
        return StepResponse(
            step=outcome.step_number,
            step_name=outcome.step_name,
            content=outcome.content,
            execution_time=outcome.execution_time_ms,
            citations=outcome.citations,
            next_step=outcome.next_step,
            workflow_completed=outcome.workflow_completed,
        )

    failure = StepFailureResponse(
        error=outcome.error_message,
        step=outcome.step_number,
        step_name=outcome.step_name,
    )
    return JSONResponse(status_code=500, content=failure.model_dump(mode="json", by_alias=True))


def _make_step_endpoint(step_number: int) -> Callable[..., Any]:
    async def run_step(
        request: StepRequest,
        session: Annotated[AsyncSession, Depends(get_session)],
        context: Annotated[AnalysisContext, Depends(get_analysis_context)],
    ) -> Union[StepResponse, JSONResponse]:
        return await execute_step(step_number, request, session, context)

    run_step.__name__ = f"run_case_analysis_step_{step_number}"
    return run_step


for _number in StepRegistry.get_all_steps():
    router.add_api_route(
        f"/case-analysis-step-{_number}",
        _make_step_endpoint(_number),
        methods=["POST"],
        response_model=StepResponse,
        response_model_by_alias=True,
        summary=f"Run step {_number}: {step_name(_number)}",
        operation_id=f"run_case_analysis_step_{_number}",
        responses={500: {"model": StepFailureResponse}},
    )
