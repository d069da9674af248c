from enum import Enum
from sqlalchemy import Column, String, ForeignKey, DateTime, Enum as SAEnum, Uuid
from src.database import Base
from src.shared.models import AuditMixin, JSONType

class AgentType(str, Enum):
    STEP_DESIGN = "step_design"

class AgentRunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

class AgentRun(Base, AuditMixin):
    """One invocation of an agent. Successful runs double as the result cache."""
    __tablename__ = "agent_runs"

    session_id = Column(ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    agent_type = Column(SAEnum(AgentType), nullable=False)
    input_hash = Column(String(32), nullable=False, index=True)
    inputs = Column(JSONType, nullable=False, default=dict)
    outputs = Column(JSONType, nullable=True)
    model = Column(String, nullable=True)
    provider = Column(String, nullable=True)
    status = Column(SAEnum(AgentRunStatus), default=AgentRunStatus.QUEUED, nullable=False)
    error = Column(String, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)
