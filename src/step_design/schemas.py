from typing import List, Optional, Dict, Any, Literal
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from src.future_state.schemas import NodeResponse
from src.step_design.models import StepDesignVersionStatus
from src.solutions.models import SolutionBucket, StepDesignStatus


# ---------------------------------------------------------------------------
# Agent output
# ---------------------------------------------------------------------------

class AgentQuestion(BaseModel):
    id: str
    question: str
    required: bool = False
    context_field: Optional[str] = None


class AgentAssumption(BaseModel):
    assumption: str
    risk_if_wrong: Optional[str] = None
    validation_method: Optional[str] = None


class AgentOption(BaseModel):
    option_key: Literal["A", "B", "C"]
    title: str = Field(..., min_length=1, description="Short name for this design option")
    summary: str = Field(..., min_length=1, description="One or two sentence summary")
    changes: str = Field(..., description="What changes versus the current step")
    waste_addressed: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)
    confidence: float = Field(..., ge=0, le=1)
    pattern_labels: List[str] = Field(default_factory=list)
    design: Dict[str, Any] = Field(
        default_factory=dict,
        description="Structured design: purpose, inputs, actions, decisions, outputs, controls, timing",
    )
    assumptions: List[AgentAssumption] = Field(default_factory=list)


class StepDesignAgentOutput(BaseModel):
    """Structured output of the step design agent."""
    questions: List[AgentQuestion] = Field(default_factory=list)
    context_needed: bool = False
    options: List[AgentOption] = Field(..., min_length=1, max_length=3)


# ---------------------------------------------------------------------------
# Step context
# ---------------------------------------------------------------------------

class StepContextUpsertRequest(BaseModel):
    # Required only when the context does not exist yet
    session_id: Optional[UUID] = None
    future_state_id: Optional[UUID] = None
    context_json: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None


class AnswerQuestionRequest(BaseModel):
    question_id: str = Field(..., min_length=1)
    answer: str


class StepContextResponse(BaseModel):
    id: UUID
    session_id: UUID
    future_state_id: UUID
    node_id: UUID
    context_json: Dict[str, Any] = {}
    notes: Optional[str]
    created_by: Optional[UUID]
    updated_by: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Design versions
# ---------------------------------------------------------------------------

class GenerateRequest(BaseModel):
    node_id: UUID
    session_id: UUID
    future_state_id: UUID
    research_mode: bool = False
    force_rerun: bool = False


class SelectOptionRequest(BaseModel):
    version_id: UUID
    option_id: UUID


class AssumptionResponse(BaseModel):
    id: UUID
    option_id: UUID
    assumption: str
    risk_if_wrong: Optional[str]
    validation_method: Optional[str]
    validated: bool

    model_config = ConfigDict(from_attributes=True)


class OptionResponse(BaseModel):
    id: UUID
    version_id: UUID
    option_key: str
    title: str
    summary: Optional[str]
    changes: Optional[str]
    waste_addressed: List[str] = []
    risks: List[str] = []
    dependencies: List[str] = []
    confidence: Optional[float]
    research_mode_used: bool
    pattern_labels: List[str] = []
    design_json: Dict[str, Any] = {}
    assumptions: List[AssumptionResponse] = []

    model_config = ConfigDict(from_attributes=True)


class DesignVersionResponse(BaseModel):
    id: UUID
    session_id: UUID
    future_state_id: UUID
    node_id: UUID
    version: int
    status: StepDesignVersionStatus
    selected_option_id: Optional[UUID]
    created_by: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GenerateResponse(BaseModel):
    version: DesignVersionResponse
    options: List[OptionResponse]
    questions: List[AgentQuestion] = []
    context_needed: bool = False
    run_id: Optional[UUID] = None
    cached: bool = False


class SelectOptionResponse(BaseModel):
    version: DesignVersionResponse
    node: NodeResponse


class SolutionSummary(BaseModel):
    id: UUID
    title: str
    description: Optional[str]
    bucket: SolutionBucket
    step_design_status: StepDesignStatus

    model_config = ConfigDict(from_attributes=True)


class SourceStepSummary(BaseModel):
    id: UUID
    step_name: str
    description: Optional[str]
    lane: Optional[str]
    lead_time_minutes: Optional[int]
    cycle_time_minutes: Optional[int]

    model_config = ConfigDict(from_attributes=True)


class StepDesignBundleResponse(BaseModel):
    node: NodeResponse
    context: Optional[StepContextResponse] = None
    versions: List[DesignVersionResponse] = []
    latest_version: Optional[DesignVersionResponse] = None
    options: List[OptionResponse] = []
    linked_solution: Optional[SolutionSummary] = None
    source_step: Optional[SourceStepSummary] = None

    model_config = ConfigDict(from_attributes=True)
