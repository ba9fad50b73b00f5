"""
Audit log model for tracking all changes
"""

from enum import Enum
from sqlalchemy import Column, DateTime, Index, Integer, JSON, String, Text, event
from custodian.models.base import Base, utcnow


class AuditAction(str, Enum):
    """Kinds of audited actions"""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ASSIGN = "assign"
    RETURN = "return"
    LOST = "lost"
    ALLOCATE_TAG = "allocate_tag"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    ROLE_CHANGE = "role_change"
    BULK = "bulk"


class AuditLog(Base):
    """Audit trail for all system changes. Append-only."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # What action was taken
    action = Column(String(50), nullable=False)

    # What was changed
    entity_type = Column(String(50), nullable=False)  # asset, assignment, user, asset_counter, bulk
    entity_id = Column(String(255), nullable=False)

    # Who made the change
    actor_id = Column(String(255), nullable=True)

    # Change details
    old_values = Column(JSON, nullable=True)  # Previous state
    new_values = Column(JSON, nullable=True)  # New state
    changed_fields = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)

    # Additional context
    extra_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_audit_logs_entity", "entity_type", "entity_id", "timestamp"),
        Index("idx_audit_logs_actor", "actor_id"),
    )

    def to_dict(self):
        """Convert model to dictionary"""
        return {
            column.name: getattr(self, column.name)
            for column in self.__table__.columns
        }


class AuditLogImmutableError(RuntimeError):
    """Raised when something tries to rewrite history"""


@event.listens_for(AuditLog, "before_update")
def _block_update(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log entry {target.id} cannot be updated")


@event.listens_for(AuditLog, "before_delete")
def _block_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log entry {target.id} cannot be deleted")
