from enum import Enum
from sqlalchemy import (
    Column, String, ForeignKey, Integer, Boolean, Float, UniqueConstraint, Enum as SAEnum,
)
from src.database import Base
from src.shared.models import AuditMixin, ActorMixin, JSONType
from src.solutions.models import StepDesignStatus

class FutureStateStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"

class StepType(str, Enum):
    ACTION = "action"
    DECISION = "decision"
    START = "start"
    END = "end"
    SUBPROCESS = "subprocess"

class NodeAction(str, Enum):
    KEEP = "keep"
    MODIFY = "modify"
    REMOVE = "remove"
    NEW = "new"

class LaneColor(str, Enum):
    BLUE = "blue"
    EMERALD = "emerald"
    AMBER = "amber"
    PURPLE = "purple"
    ROSE = "rose"
    SLATE = "slate"
    CYAN = "cyan"
    ORANGE = "orange"

class AnnotationType(str, Enum):
    NOTE = "note"
    GUARDRAIL = "guardrail"
    ASSUMPTION = "assumption"
    RISK = "risk"
    INSTRUCTION = "instruction"

class AnnotationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FutureStateVersion(Base, AuditMixin, ActorMixin):
    __tablename__ = "future_states"
    __table_args__ = (
        UniqueConstraint("session_id", "version", name="uq_future_states_session_version"),
    )

    process_id = Column(ForeignKey("processes.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    # Lineage pointer; survives deletion of the parent as NULL
    parent_version_id = Column(ForeignKey("future_states.id", ondelete="SET NULL"), nullable=True, index=True)

    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    status = Column(SAEnum(FutureStateStatus), default=FutureStateStatus.DRAFT, nullable=False)
    is_locked = Column(Boolean, default=False, nullable=False)


class FutureStateNode(Base, AuditMixin, ActorMixin):
    __tablename__ = "future_state_nodes"

    future_state_id = Column(ForeignKey("future_states.id", ondelete="CASCADE"), nullable=False, index=True)
    source_step_id = Column(ForeignKey("process_steps.id", ondelete="SET NULL"), nullable=True)

    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    # Lanes are referenced by name, not id
    lane = Column(String, nullable=False)
    step_type = Column(SAEnum(StepType), default=StepType.ACTION, nullable=False)
    lead_time_minutes = Column(Integer, nullable=True)
    cycle_time_minutes = Column(Integer, nullable=True)
    position_x = Column(Float, default=0, nullable=False)
    position_y = Column(Float, default=0, nullable=False)
    action = Column(SAEnum(NodeAction), default=NodeAction.KEEP, nullable=False)
    modified_fields = Column(JSONType, nullable=False, default=dict)

    linked_solution_id = Column(ForeignKey("solution_cards.id", ondelete="SET NULL"), nullable=True, index=True)
    # Head pointer to the accepted design version of this node
    active_step_design_version_id = Column(
        ForeignKey("step_design_versions.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
    )
    step_design_status = Column(
        SAEnum(StepDesignStatus), default=StepDesignStatus.STRATEGY_ONLY, nullable=False
    )


class FutureStateEdge(Base, AuditMixin):
    __tablename__ = "future_state_edges"

    future_state_id = Column(ForeignKey("future_states.id", ondelete="CASCADE"), nullable=False, index=True)
    source_node_id = Column(ForeignKey("future_state_nodes.id", ondelete="CASCADE"), nullable=False, index=True)
    target_node_id = Column(ForeignKey("future_state_nodes.id", ondelete="CASCADE"), nullable=False)
    label = Column(String, nullable=True)
    order_index = Column(Integer, default=0, nullable=False)


class FutureStateLane(Base, AuditMixin, ActorMixin):
    __tablename__ = "future_state_lanes"
    __table_args__ = (
        UniqueConstraint("future_state_id", "name", name="uq_future_state_lanes_name"),
    )

    future_state_id = Column(ForeignKey("future_states.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)
    color = Column(SAEnum(LaneColor), default=LaneColor.BLUE, nullable=False)


class FutureStateAnnotation(Base, AuditMixin, ActorMixin):
    __tablename__ = "future_state_annotations"

    future_state_id = Column(ForeignKey("future_states.id", ondelete="CASCADE"), nullable=False, index=True)
    node_id = Column(ForeignKey("future_state_nodes.id", ondelete="CASCADE"), nullable=True, index=True)
    type = Column(SAEnum(AnnotationType), default=AnnotationType.NOTE, nullable=False)
    title = Column(String, nullable=False)
    content = Column(String, nullable=True)
    priority = Column(SAEnum(AnnotationPriority), default=AnnotationPriority.MEDIUM, nullable=False)
    resolved = Column(Boolean, default=False, nullable=False)
    position_x = Column(Float, nullable=True)
    position_y = Column(Float, nullable=True)
