"""
Asset assignment model
"""

from enum import Enum
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, CheckConstraint, text
from custodian.models.base import BaseModel, utcnow


class AssignmentStatus(str, Enum):
    """Stored assignment states. OVERDUE is only ever derived at read time."""
    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"
    LOST = "lost"


# Name of the partial unique index guarding one active holder per asset
ACTIVE_ASSIGNMENT_INDEX = "uq_asset_assignments_active_asset"


class Assignment(BaseModel):
    """Custody of one asset by one user over a period of time

    Rows are never deleted: a returned or lost assignment stays as history.
    """

    __tablename__ = "asset_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(Integer, ForeignKey("assets.id", ondelete="RESTRICT"), nullable=False)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    status = Column(String(20), nullable=False, default=AssignmentStatus.ACTIVE.value)

    # Dates
    assigned_at = Column(DateTime, nullable=False, default=utcnow)
    expected_return_at = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)

    # Who did it
    assigned_by = Column(String(255), ForeignKey("users.id"), nullable=True)
    returned_by = Column(String(255), ForeignKey("users.id"), nullable=True)

    # Details
    purpose = Column(String(255), nullable=True)  # Work from home, project, replacement, etc.
    notes = Column(Text, nullable=True)
    return_notes = Column(Text, nullable=True)
    actual_return_condition = Column(String(20), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'returned', 'overdue', 'lost')",
            name="ck_assignment_status",
        ),
        Index(
            ACTIVE_ASSIGNMENT_INDEX,
            "asset_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("idx_asset_assignments_user_status", "user_id", "status"),
        Index("idx_asset_assignments_expected_return", "expected_return_at"),
    )

    def __repr__(self):
        return f"<Assignment {self.id} asset={self.asset_id} user={self.user_id} status={self.status}>"
