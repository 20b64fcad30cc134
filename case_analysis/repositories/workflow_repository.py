import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from case_analysis.database.models import (
    CaseAnalysisStep,
    CaseAnalysisWorkflow,
    StepStatus,
    WorkflowStatus,
    utcnow,
)
from case_analysis.repositories.base_repository import BaseRepository


class CaseAnalysisWorkflowRepository(BaseRepository[CaseAnalysisWorkflow]):
    """Repository for analysis workflow records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, CaseAnalysisWorkflow)

    async def get_with_steps(self, workflow_id: uuid.UUID) -> Optional[CaseAnalysisWorkflow]:
        """Get a workflow by ID with its steps loaded in step order.

        ``populate_existing`` refreshes rows already in the identity map, since
        step rows are also changed through bulk UPDATE statements.
        """
        query = (
            select(CaseAnalysisWorkflow)
            .where(CaseAnalysisWorkflow.id == workflow_id)
            .options(selectinload(CaseAnalysisWorkflow.steps))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create_workflow(
        self,
        client_id: uuid.UUID,
        case_id: Optional[uuid.UUID],
        total_steps: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CaseAnalysisWorkflow:
        """Create a running workflow positioned at step 1."""
        return await self.create(
            client_id=client_id,
            case_id=case_id,
            status=WorkflowStatus.RUNNING.value,
            current_step=1,
            total_steps=total_steps,
            started_at=utcnow(),
            workflow_metadata=metadata or {},
        )

    async def list_running(
        self,
        client_id: uuid.UUID,
        started_before: Optional[datetime] = None,
    ) -> Sequence[CaseAnalysisWorkflow]:
        """List running workflows for a client, optionally only old ones."""
        query = select(CaseAnalysisWorkflow).where(
            CaseAnalysisWorkflow.client_id == client_id,
            CaseAnalysisWorkflow.status == WorkflowStatus.RUNNING.value,
        )
        if started_before is not None:
            query = query.where(CaseAnalysisWorkflow.started_at < started_before)

        query = query.order_by(CaseAnalysisWorkflow.started_at)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def set_status(
        self,
        workflow_ids: List[uuid.UUID],
        status: WorkflowStatus,
        error_message: Optional[str] = None,
    ) -> int:
        """Force a terminal status on the given running workflows.

        Returns:
            Number of workflows updated
        """
        if not workflow_ids:
            return 0

        now = utcnow()
        values: Dict[str, Any] = {"status": status.value, "updated_at": now}
        if status != WorkflowStatus.RUNNING:
            values["completed_at"] = now
        if error_message is not None:
            values["error_message"] = error_message

        stmt = (
            update(CaseAnalysisWorkflow)
            .where(
                CaseAnalysisWorkflow.id.in_(workflow_ids),
                CaseAnalysisWorkflow.status == WorkflowStatus.RUNNING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def advance(self, workflow_id: uuid.UUID, next_step: int) -> None:
        """Move the current-step pointer forward, never backward."""
        stmt = (
            update(CaseAnalysisWorkflow)
            .where(
                CaseAnalysisWorkflow.id == workflow_id,
                CaseAnalysisWorkflow.current_step < next_step,
            )
            .values(current_step=next_step, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def mark_completed(self, workflow_id: uuid.UUID, final_step: int) -> None:
        """Force status=completed and park the pointer on the final step."""
        now = utcnow()
        stmt = (
            update(CaseAnalysisWorkflow)
            .where(CaseAnalysisWorkflow.id == workflow_id)
            .values(
                status=WorkflowStatus.COMPLETED.value,
                current_step=final_step,
                completed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def mark_failed(self, workflow_id: uuid.UUID, error_message: str) -> None:
        """Fail a running workflow with the given message."""
        await self.set_status([workflow_id], WorkflowStatus.FAILED, error_message=error_message)


class CaseAnalysisStepRepository(BaseRepository[CaseAnalysisStep]):
    """Repository for per-step analysis records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, CaseAnalysisStep)

    async def create_steps(self, workflow_id: uuid.UUID, step_names: List[str]) -> List[CaseAnalysisStep]:
        """Insert one pending step per name, numbered from 1."""
        steps = [
            CaseAnalysisStep(
                workflow_id=workflow_id,
                step_number=number,
                step_name=name,
                status=StepStatus.PENDING.value,
                citations=[],
            )
            for number, name in enumerate(step_names, start=1)
        ]
        self.session.add_all(steps)
        await self.session.flush()
        return steps

    async def claim(
        self,
        workflow_id: uuid.UUID,
        step_number: int,
        stale_before: Optional[datetime] = None,
    ) -> bool:
        """Atomically move a pending or failed step to running.

        The status predicate lives in the UPDATE itself, so of two concurrent
        callers only one sees a matched row. A running step whose run started
        before ``stale_before`` is treated as abandoned and may be reclaimed.

        Returns:
            True if this caller now owns the step
        """
        now = utcnow()
        claimable = CaseAnalysisStep.status.in_([StepStatus.PENDING.value, StepStatus.FAILED.value])
        if stale_before is not None:
            claimable = or_(
                claimable,
                and_(
                    CaseAnalysisStep.status == StepStatus.RUNNING.value,
                    CaseAnalysisStep.started_at < stale_before,
                ),
            )

        stmt = (
            update(CaseAnalysisStep)
            .where(
                CaseAnalysisStep.workflow_id == workflow_id,
                CaseAnalysisStep.step_number == step_number,
                claimable,
            )
            .values(
                status=StepStatus.RUNNING.value,
                started_at=now,
                completed_at=None,
                error_message=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) == 1

    async def complete(
        self,
        workflow_id: uuid.UUID,
        step_number: int,
        content: str,
        citations: List[Dict[str, Any]],
        execution_time_ms: int,
    ) -> None:
        now = utcnow()
        stmt = (
            update(CaseAnalysisStep)
            .where(
                CaseAnalysisStep.workflow_id == workflow_id,
                CaseAnalysisStep.step_number == step_number,
            )
            .values(
                status=StepStatus.COMPLETED.value,
                content=content,
                citations=citations,
                execution_time_ms=execution_time_ms,
                completed_at=now,
                error_message=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def fail(self, workflow_id: uuid.UUID, step_number: int, error_message: str) -> None:
        now = utcnow()
        stmt = (
            update(CaseAnalysisStep)
            .where(
                CaseAnalysisStep.workflow_id == workflow_id,
                CaseAnalysisStep.step_number == step_number,
            )
            .values(
                status=StepStatus.FAILED.value,
                error_message=error_message,
                completed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def fail_running(self, workflow_ids: List[uuid.UUID], error_message: str) -> int:
        """Fail every running step of the given workflows.

        Returns:
            Number of steps updated
        """
        if not workflow_ids:
            return 0

        now = utcnow()
        stmt = (
            update(CaseAnalysisStep)
            .where(
                CaseAnalysisStep.workflow_id.in_(workflow_ids),
                CaseAnalysisStep.status == StepStatus.RUNNING.value,
            )
            .values(
                status=StepStatus.FAILED.value,
                error_message=error_message,
                completed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
