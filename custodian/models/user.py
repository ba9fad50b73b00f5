"""
User model, the local record behind an authenticated identity
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, String

from custodian.models.base import BaseModel


class User(BaseModel):
    """A person who can hold assets and act on the system"""

    __tablename__ = "users"

    # Identity provider subject id
    id = Column(String(255), primary_key=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, nullable=False)
    image = Column(String(255), nullable=True)

    # Organization
    role = Column(String(20), nullable=False, default="user")
    department = Column(String(100), nullable=True)
    job_title = Column(String(100), nullable=True)
    employee_id = Column(String(50), unique=True, nullable=True)
    phone = Column(String(20), nullable=True)

    # Status
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "role IN ('viewer', 'user', 'manager', 'admin', 'super_admin')",
            name="ck_user_role",
        ),
        Index("idx_users_department", "department"),
        Index("idx_users_is_active", "is_active"),
    )

    def __repr__(self):
        return f"<User {self.id} role={self.role}>"
