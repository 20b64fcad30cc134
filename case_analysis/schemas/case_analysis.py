"""Request and response schemas for the case analysis API.

Fields are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WorkflowManagerRequest(CamelModel):
    """Body of the workflow manager endpoint; required fields depend on ``action``."""

    action: Optional[str] = Field(
        None,
        description="create_workflow | get_workflow_status | complete_workflow",
        examples=["create_workflow"],
    )
    client_id: Optional[UUID] = None
    case_id: Optional[UUID] = None
    workflow_id: Optional[UUID] = None


class CreateWorkflowResponse(CamelModel):
    success: bool = True
    workflow_id: UUID
    current_step: int
    total_steps: int
    status: str


class StepView(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    step_number: int
    step_name: str
    status: str
    content: Optional[str] = None
    citations: Optional[List[Any]] = None
    execution_time_ms: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None


class WorkflowView(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    client_id: UUID
    case_id: Optional[UUID] = None
    status: str
    current_step: int
    total_steps: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(
        None,
        validation_alias=AliasChoices("workflow_metadata", "metadata"),
        serialization_alias="metadata",
    )


class WorkflowStatusResponse(CamelModel):
    success: bool = True
    workflow: WorkflowView
    steps: List[StepView]
    current_step: int
    total_steps: int
    status: str


class CompleteWorkflowResponse(CamelModel):
    success: bool = True
    workflow_id: UUID
    status: str
    analysis_saved: bool = False


class StepRequest(CamelModel):
    """Body of every ``case-analysis-step-{n}`` endpoint."""

    workflow_id: Optional[UUID] = None
    step_number: Optional[int] = Field(None, ge=1, le=9)
    previous_content: Optional[str] = Field(
        None, description="Output of the preceding step, overriding the stored text"
    )
    all_previous_content: Optional[Dict[str, Any]] = Field(
        None, description='Earlier outputs keyed by "step3", "3" or step name'
    )


class StepResponse(CamelModel):
    success: bool = True
    step: int
    step_name: str
    content: str
    execution_time: int
    citations: List[Any] = Field(default_factory=list)
    next_step: Optional[int] = None
    workflow_completed: bool = False


class StepFailureResponse(CamelModel):
    success: bool = False
    error: str
    step: int
    step_name: str


class CleanupWorkflowsRequest(CamelModel):
    client_id: Optional[UUID] = None


class WorkflowSummary(CamelModel):
    id: UUID
    status: str


class CleanupWorkflowsResponse(CamelModel):
    message: str
    cleaned: int
    workflows: List[WorkflowSummary] = Field(default_factory=list)


class CleanupStuckWorkflowsRequest(CamelModel):
    client_id: Optional[UUID] = None
    older_than_minutes: Optional[int] = Field(None, ge=1)


class CleanupStuckWorkflowsResponse(CamelModel):
    success: bool = True
    cleaned_up: int
    workflows: List[WorkflowSummary] = Field(default_factory=list)


class CaseLawSearchRequest(CamelModel):
    query: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)


class CaseLawSearchResponse(CamelModel):
    cases: List[Dict[str, Any]]
    cache_hit: bool
    total_results: int


class RunAnalysisRequest(CamelModel):
    workflow_id: Optional[UUID] = None


class RunAnalysisResponse(CamelModel):
    success: bool = True
    workflow_id: UUID
    message: str
