from sqlalchemy import Column, String, ForeignKey
from src.database import Base
from src.shared.models import AuditMixin, ActorMixin

class WasteWalkSession(Base, AuditMixin, ActorMixin):
    """A waste-walk session over one as-is process. Future states hang off it."""
    __tablename__ = "sessions"

    name = Column(String, nullable=False)
    process_id = Column(ForeignKey("processes.id", ondelete="CASCADE"), nullable=False, index=True)
