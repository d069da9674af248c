from sqlalchemy import Column, String, ForeignKey, Integer
from sqlalchemy.orm import relationship
from src.database import Base
from src.shared.models import AuditMixin, ActorMixin, JSONType

class Process(Base, AuditMixin, ActorMixin):
    __tablename__ = "processes"

    name = Column(String, nullable=False)
    description = Column(String, nullable=True)

    steps = relationship("ProcessStep", back_populates="process")
    workflow_context = relationship("WorkflowContext", back_populates="process", uselist=False)

class ProcessStep(Base, AuditMixin, ActorMixin):
    """An as-is process step. Future-state nodes may point back at one."""
    __tablename__ = "process_steps"

    process_id = Column(ForeignKey("processes.id", ondelete="CASCADE"), nullable=False, index=True)
    step_name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    lane = Column(String, nullable=False)
    lead_time_minutes = Column(Integer, nullable=True)
    cycle_time_minutes = Column(Integer, nullable=True)

    process = relationship("Process", back_populates="steps")

class WorkflowContext(Base, AuditMixin, ActorMixin):
    """Business framing for a process, fed to the design agent."""
    __tablename__ = "workflow_contexts"

    process_id = Column(ForeignKey("processes.id", ondelete="CASCADE"), nullable=False, unique=True)
    purpose = Column(String, nullable=True)
    business_value = Column(String, nullable=True)
    trigger_events = Column(JSONType, nullable=False, default=list)
    end_outcomes = Column(JSONType, nullable=False, default=list)
    volume_frequency = Column(String, nullable=True)
    sla_targets = Column(String, nullable=True)
    constraints = Column(JSONType, nullable=False, default=list)

    process = relationship("Process", back_populates="workflow_context")
