from typing import List, Optional, Dict, Any
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

from src.future_state.models import (
    FutureStateStatus, StepType, NodeAction, LaneColor, AnnotationType, AnnotationPriority,
)
from src.solutions.models import StepDesignStatus


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------

class CreateVersionRequest(BaseModel):
    session_id: UUID
    source_version_id: UUID
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class CreateInitialVersionRequest(BaseModel):
    session_id: UUID
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class UpdateVersionRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    status: Optional[FutureStateStatus] = None
    is_locked: Optional[bool] = None


class VersionResponse(BaseModel):
    id: UUID
    process_id: UUID
    session_id: UUID
    parent_version_id: Optional[UUID]
    name: str
    description: Optional[str]
    version: int
    status: FutureStateStatus
    is_locked: bool
    created_by: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------

class CreateNodeRequest(BaseModel):
    name: str = Field(..., min_length=1)
    lane: str = Field(..., min_length=1)
    description: Optional[str] = None
    step_type: StepType = StepType.ACTION
    action: NodeAction = NodeAction.NEW
    position_x: float = 0
    position_y: float = 0
    lead_time_minutes: Optional[int] = None
    cycle_time_minutes: Optional[int] = None
    source_step_id: Optional[UUID] = None
    linked_solution_id: Optional[UUID] = None
    step_design_status: StepDesignStatus = StepDesignStatus.NEEDS_STEP_DESIGN


class UpdateNodeRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    lane: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    step_type: Optional[StepType] = None
    action: Optional[NodeAction] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None
    lead_time_minutes: Optional[int] = None
    cycle_time_minutes: Optional[int] = None
    modified_fields: Optional[Dict[str, Any]] = None
    linked_solution_id: Optional[UUID] = None


class NodeResponse(BaseModel):
    id: UUID
    future_state_id: UUID
    source_step_id: Optional[UUID]
    name: str
    description: Optional[str]
    lane: str
    step_type: StepType
    lead_time_minutes: Optional[int]
    cycle_time_minutes: Optional[int]
    position_x: float
    position_y: float
    action: NodeAction
    modified_fields: Dict[str, Any] = {}
    linked_solution_id: Optional[UUID]
    active_step_design_version_id: Optional[UUID]
    step_design_status: StepDesignStatus

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------

class CreateEdgeRequest(BaseModel):
    source_node_id: UUID
    target_node_id: UUID
    label: Optional[str] = None
    order_index: Optional[int] = None


class UpdateEdgeRequest(BaseModel):
    label: Optional[str] = None
    order_index: Optional[int] = None


class EdgeResponse(BaseModel):
    id: UUID
    future_state_id: UUID
    source_node_id: UUID
    target_node_id: UUID
    label: Optional[str]
    order_index: int

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Lanes
# ---------------------------------------------------------------------------

class CreateLaneRequest(BaseModel):
    name: str = Field(..., min_length=1)
    color: LaneColor = LaneColor.BLUE
    order_index: Optional[int] = None


class UpdateLaneRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    color: Optional[LaneColor] = None
    order_index: Optional[int] = None


class LaneResponse(BaseModel):
    id: UUID
    future_state_id: UUID
    name: str
    order_index: int
    color: LaneColor

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Annotations
# ---------------------------------------------------------------------------

class CreateAnnotationRequest(BaseModel):
    title: str = Field(..., min_length=1)
    type: AnnotationType = AnnotationType.NOTE
    content: Optional[str] = None
    node_id: Optional[UUID] = None
    priority: AnnotationPriority = AnnotationPriority.MEDIUM
    position_x: Optional[float] = None
    position_y: Optional[float] = None


class UpdateAnnotationRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    type: Optional[AnnotationType] = None
    content: Optional[str] = None
    priority: Optional[AnnotationPriority] = None
    resolved: Optional[bool] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None


class AnnotationResponse(BaseModel):
    id: UUID
    future_state_id: UUID
    node_id: Optional[UUID]
    type: AnnotationType
    title: str
    content: Optional[str]
    priority: AnnotationPriority
    resolved: bool
    position_x: Optional[float]
    position_y: Optional[float]

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Full graph
# ---------------------------------------------------------------------------

class GraphResponse(BaseModel):
    nodes: List[NodeResponse] = []
    edges: List[EdgeResponse] = []
    lanes: List[LaneResponse] = []
    annotations: List[AnnotationResponse] = []

    model_config = ConfigDict(from_attributes=True)


class VersionWithGraphResponse(VersionResponse):
    graph: GraphResponse
