from enum import Enum
from sqlalchemy import (
    Column, String, ForeignKey, Integer, Boolean, Float, UniqueConstraint, Index, Enum as SAEnum, text,
)
from sqlalchemy.orm import relationship
from src.database import Base
from src.shared.models import AuditMixin, ActorMixin, JSONType

class StepDesignVersionStatus(str, Enum):
    DRAFT = "draft"
    ACCEPTED = "accepted"
    ARCHIVED = "archived"


class StepContext(Base, AuditMixin, ActorMixin):
    """Free-form Q&A and notes for a single node, independent of design versions."""
    __tablename__ = "step_context"

    session_id = Column(ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    future_state_id = Column(ForeignKey("future_states.id", ondelete="CASCADE"), nullable=False, index=True)
    node_id = Column(ForeignKey("future_state_nodes.id", ondelete="CASCADE"), nullable=False, unique=True)
    context_json = Column(JSONType, nullable=False, default=dict)
    notes = Column(String, nullable=True)


class StepDesignVersion(Base, AuditMixin, ActorMixin):
    __tablename__ = "step_design_versions"
    __table_args__ = (
        UniqueConstraint("node_id", "version", name="uq_step_design_versions_node_version"),
        # At most one accepted design per node
        Index(
            "uq_step_design_versions_node_accepted",
            "node_id",
            unique=True,
            postgresql_where=text("status = 'ACCEPTED'"),
            sqlite_where=text("status = 'ACCEPTED'"),
        ),
    )

    # session/future state are denormalized for query convenience
    session_id = Column(ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    future_state_id = Column(ForeignKey("future_states.id", ondelete="CASCADE"), nullable=False, index=True)
    node_id = Column(ForeignKey("future_state_nodes.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    status = Column(SAEnum(StepDesignVersionStatus), default=StepDesignVersionStatus.DRAFT, nullable=False)
    selected_option_id = Column(
        ForeignKey("step_design_options.id", ondelete="SET NULL", use_alter=True),
        nullable=True,
    )

    options = relationship(
        "StepDesignOption",
        back_populates="design_version",
        foreign_keys="StepDesignOption.version_id",
        order_by="StepDesignOption.option_key",
    )


class StepDesignOption(Base, AuditMixin):
    __tablename__ = "step_design_options"
    __table_args__ = (
        UniqueConstraint("version_id", "option_key", name="uq_step_design_options_key"),
    )

    version_id = Column(ForeignKey("step_design_versions.id", ondelete="CASCADE"), nullable=False, index=True)
    option_key = Column(String(1), nullable=False)  # "A" | "B" | "C"
    title = Column(String, nullable=False)
    summary = Column(String, nullable=True)
    changes = Column(String, nullable=True)
    waste_addressed = Column(JSONType, nullable=False, default=list)
    risks = Column(JSONType, nullable=False, default=list)
    dependencies = Column(JSONType, nullable=False, default=list)
    confidence = Column(Float, nullable=True)
    research_mode_used = Column(Boolean, default=False, nullable=False)
    pattern_labels = Column(JSONType, nullable=False, default=list)
    design_json = Column(JSONType, nullable=False, default=dict)

    design_version = relationship(
        "StepDesignVersion", back_populates="options", foreign_keys=[version_id]
    )
    assumptions = relationship("DesignAssumption", back_populates="option")


class DesignAssumption(Base, AuditMixin):
    __tablename__ = "design_assumptions"

    option_id = Column(ForeignKey("step_design_options.id", ondelete="CASCADE"), nullable=False, index=True)
    assumption = Column(String, nullable=False)
    risk_if_wrong = Column(String, nullable=True)
    validation_method = Column(String, nullable=True)
    validated = Column(Boolean, default=False, nullable=False)

    option = relationship("StepDesignOption", back_populates="assumptions")
