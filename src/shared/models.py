import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

class UUIDMixin:
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

class AuditMixin(UUIDMixin, TimestampMixin):
    """Combines UUID and Timestamps for standard entities."""
    pass

class ActorMixin:
    """Tracks which user created and last touched a row."""
    created_by = Column(Uuid(as_uuid=True), nullable=True)
    updated_by = Column(Uuid(as_uuid=True), nullable=True)
