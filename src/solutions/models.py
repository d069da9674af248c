from enum import Enum
from sqlalchemy import Column, String, ForeignKey, Enum as SAEnum
from src.database import Base
from src.shared.models import AuditMixin, ActorMixin

class StepDesignStatus(str, Enum):
    STRATEGY_ONLY = "strategy_only"
    NEEDS_STEP_DESIGN = "needs_step_design"
    STEP_DESIGN_COMPLETE = "step_design_complete"

class SolutionBucket(str, Enum):
    ELIMINATE = "eliminate"
    MODIFY = "modify"
    CREATE = "create"

class SolutionCard(Base, AuditMixin, ActorMixin):
    """An improvement initiative. Only step_design_status is written by this service."""
    __tablename__ = "solution_cards"

    session_id = Column(ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    bucket = Column(SAEnum(SolutionBucket), nullable=False)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    step_design_status = Column(
        SAEnum(StepDesignStatus),
        default=StepDesignStatus.STRATEGY_ONLY,
        nullable=False,
    )
