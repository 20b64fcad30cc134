"""Shared executor for the nine analysis steps."""

import time
from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from case_analysis.core.context import AnalysisContext
from case_analysis.core.exceptions import (
    StepConflictError,
    ValidationError,
    WorkflowNotFoundError,
)
from case_analysis.database.models import CaseAnalysisWorkflow, Document, StepStatus, WorkflowStatus, utcnow
from case_analysis.repositories.document_repository import DocumentRepository
from case_analysis.repositories.workflow_repository import (
    CaseAnalysisStepRepository,
    CaseAnalysisWorkflowRepository,
)
from case_analysis.services.base_service import BaseService
from case_analysis.services.case_analysis.constants import FINAL_STEP, STEP_NAMES, step_name
from case_analysis.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class StepCompleted:
    """Successful step run."""

    step_number: int
    step_name: str
    content: str
    citations: List[Any]
    execution_time_ms: int
    next_step: Optional[int]
    workflow_completed: bool = False

    success: bool = field(default=True, init=False)


@dataclass
class StepFailed:
    """Step run that raised after the step was claimed."""

    step_number: int
    step_name: str
    error_message: str

    success: bool = field(default=False, init=False)


StepOutcome = Union[StepCompleted, StepFailed]


@dataclass
class StepInput:
    """Everything a step needs to build its prompt."""

    workflow: CaseAnalysisWorkflow
    prior_content: Dict[int, str]

    def content(self, step_number: int, default: str = "") -> str:
        return self.prior_content.get(step_number) or default

    def combined(self, before_step: int) -> str:
        """All earlier step outputs, in order, separated by blank lines."""
        sections = [
            f"## {STEP_NAMES[number - 1]}\n{self.prior_content[number]}"
            for number in sorted(self.prior_content)
            if number < before_step and self.prior_content[number]
        ]
        return "\n\n".join(sections)


@dataclass
class PreparedPrompt:
    user_prompt: str
    citations: List[Any] = field(default_factory=list)


def merge_prior_content(
    stored: Mapping[int, str],
    step_number: int,
    previous_content: Optional[str] = None,
    all_previous_content: Optional[Mapping[str, Any]] = None,
) -> Dict[int, str]:
    """Combine stored step outputs with text supplied by the caller.

    Caller text wins over stored text. ``all_previous_content`` keys may be
    ``"step3"``, ``"3"`` or a step name; unknown keys are ignored.
    ``previous_content`` is assigned to the immediately preceding step.
    """
    merged = {number: text for number, text in stored.items() if text}
    name_to_number = {name.lower(): index for index, name in enumerate(STEP_NAMES, start=1)}

    for key, value in (all_previous_content or {}).items():
        if not isinstance(value, str) or not value.strip():
            continue
        normalized = str(key).strip().lower()
        if normalized.startswith("step"):
            normalized = normalized[4:]
        number = int(normalized) if normalized.isdigit() else name_to_number.get(normalized)
        if number is not None and 1 <= number < step_number:
            merged[number] = value

    if previous_content and previous_content.strip() and step_number > 1:
        merged[step_number - 1] = previous_content

    return merged


class BaseAnalysisStep(BaseService):
    """Template for one step: guard, claim, prompt, call the LLM, persist.

    Subclasses set ``step_number``, ``system_prompt`` and ``max_output_tokens``
    and implement ``prepare``.
    """

    step_number: int = 0
    system_prompt: str = ""
    max_output_tokens: int = 2000
    # Steps whose output must be non-empty before this step can run
    required_steps: Tuple[int, ...] = ()

    def __init__(self, session: AsyncSession, context: AnalysisContext):
        super().__init__(session)
        self.context = context
        self.workflow_repo = CaseAnalysisWorkflowRepository(session)
        self.step_repo = CaseAnalysisStepRepository(session)

    @property
    def step_name(self) -> str:
        return step_name(self.step_number)

    def validate(self, *args, **kwargs):
        if not kwargs.get("workflow_id"):
            raise ValidationError("workflowId is required")

    async def run(self, *args, **kwargs) -> StepOutcome:
        workflow_id: UUID = kwargs["workflow_id"]

        workflow = await self.workflow_repo.get_with_steps(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found")

        self._check_order(workflow)

        stored = {step.step_number: step.content for step in workflow.steps if step.content}
        step_input = StepInput(
            workflow=workflow,
            prior_content=merge_prior_content(
                stored,
                self.step_number,
                kwargs.get("previous_content"),
                kwargs.get("all_previous_content"),
            ),
        )
        for required in self.required_steps:
            if not step_input.content(required).strip():
                raise ValidationError(f"Content from step {required} ({step_name(required)}) is required")

        # A run interrupted before it could record an outcome leaves the step running
        stale_before = utcnow() - timedelta(minutes=self.context.settings.analysis.stuck_workflow_minutes)
        if not await self.step_repo.claim(workflow_id, self.step_number, stale_before=stale_before):
            await self.session.rollback()
            raise StepConflictError(
                f"Step {self.step_number} ({self.step_name}) is already running or completed",
                step_number=self.step_number,
            )
        await self.session.commit()
        LOGGER.info(f"Step {self.step_number} ({self.step_name}) started for workflow {workflow_id}")

        started = time.perf_counter()
        try:
            prepared = await self.prepare(step_input)
            content = await self.context.llm.generate_content(
                prepared.user_prompt,
                system_instruction=self.system_prompt,
                generation_config={"max_output_tokens": self.max_output_tokens},
            )
            execution_time_ms = int((time.perf_counter() - started) * 1000)

            await self.step_repo.complete(
                workflow_id,
                self.step_number,
                content=content,
                citations=prepared.citations,
                execution_time_ms=execution_time_ms,
            )
            if self.step_number == FINAL_STEP:
                await self.workflow_repo.mark_completed(workflow_id, FINAL_STEP)
            else:
                await self.workflow_repo.advance(workflow_id, self.step_number + 1)
            await self.session.commit()

        except Exception as e:
            return await self._record_failure(workflow_id, e)

        LOGGER.info(
            f"Step {self.step_number} ({self.step_name}) completed in {execution_time_ms}ms",
            extra={"workflow_id": str(workflow_id), "citations": len(prepared.citations)},
        )
        if self.step_number == FINAL_STEP:
            await self.on_workflow_completed(workflow_id)

        return StepCompleted(
            step_number=self.step_number,
            step_name=self.step_name,
            content=content,
            citations=prepared.citations,
            execution_time_ms=execution_time_ms,
            next_step=None if self.step_number == FINAL_STEP else self.step_number + 1,
            workflow_completed=self.step_number == FINAL_STEP,
        )

    def _check_order(self, workflow: CaseAnalysisWorkflow) -> None:
        """Reject execution unless the workflow and preceding step allow it."""
        if workflow.status != WorkflowStatus.RUNNING.value:
            raise StepConflictError(
                f"Workflow {workflow.id} is {workflow.status}; steps can only run while it is running",
                step_number=self.step_number,
            )

        steps = {step.step_number: step for step in workflow.steps}
        current = steps.get(self.step_number)
        if current is None:
            raise StepConflictError(
                f"Workflow {workflow.id} has no step {self.step_number}",
                step_number=self.step_number,
            )
        if current.status == StepStatus.COMPLETED.value:
            raise StepConflictError(
                f"Step {self.step_number} ({self.step_name}) is already completed",
                step_number=self.step_number,
            )

        if self.step_number > 1:
            previous = steps.get(self.step_number - 1)
            if previous is None or previous.status != StepStatus.COMPLETED.value:
                raise StepConflictError(
                    f"Step {self.step_number - 1} must be completed before step {self.step_number}",
                    step_number=self.step_number,
                )

    async def _record_failure(self, workflow_id: UUID, error: Exception) -> StepFailed:
        error_message = str(error) or error.__class__.__name__
        LOGGER.error(
            f"Step {self.step_number} ({self.step_name}) failed: {error_message}",
            exc_info=True,
            extra={"workflow_id": str(workflow_id)},
        )

        await self.session.rollback()
        try:
            await self.step_repo.fail(workflow_id, self.step_number, error_message)
            if self.step_number == FINAL_STEP:
                await self.workflow_repo.mark_failed(workflow_id, error_message)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            LOGGER.error(
                f"Could not record failure of step {self.step_number} for workflow {workflow_id}",
                exc_info=True,
            )

        return StepFailed(
            step_number=self.step_number,
            step_name=self.step_name,
            error_message=error_message,
        )

    async def search_documents(self, text: str, client_id: Optional[UUID]) -> List[Document]:
        """Best-effort document search; any failure yields no documents."""
        try:
            return list(
                await DocumentRepository(self.session).search(
                    text,
                    limit=self.context.settings.analysis.document_search_limit,
                    client_id=client_id,
                )
            )
        except Exception as e:
            await self.session.rollback()
            LOGGER.warning(f"Document search failed, continuing without it: {e}")
            return []

    async def on_workflow_completed(self, workflow_id: UUID) -> None:
        """Hook run after the final step commits."""
        pass

    @abstractmethod
    async def prepare(self, step_input: StepInput) -> PreparedPrompt:
        """Gather auxiliary context and build the user prompt."""
        pass


class StepRegistry:
    """Central registry mapping step numbers to executor classes."""

    _steps: Dict[int, Type[BaseAnalysisStep]] = {}

    @classmethod
    def register(cls, step_number: int) -> Callable[[Type[BaseAnalysisStep]], Type[BaseAnalysisStep]]:
        """Decorator to register a step executor."""
        def decorator(step_class: Type[BaseAnalysisStep]) -> Type[BaseAnalysisStep]:
            step_class.step_number = step_number
            cls._steps[step_number] = step_class
            return step_class
        return decorator

    @classmethod
    def get(cls, step_number: int) -> Type[BaseAnalysisStep]:
        if step_number not in cls._steps:
            raise ValidationError(f"Unknown step number: {step_number}")
        return cls._steps[step_number]

    @classmethod
    def create(cls, step_number: int, session: AsyncSession, context: AnalysisContext) -> BaseAnalysisStep:
        return cls.get(step_number)(session, context)

    @classmethod
    def get_all_steps(cls) -> Dict[int, Type[BaseAnalysisStep]]:
        return dict(sorted(cls._steps.items()))
