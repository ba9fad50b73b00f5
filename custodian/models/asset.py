"""
Asset model and the per-category tag counter
"""

from enum import Enum
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, CheckConstraint
from custodian.models.base import BaseModel, utcnow


class AssetStatus(str, Enum):
    """Lifecycle status of an asset"""
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    MAINTENANCE = "maintenance"
    REPAIR = "repair"
    RETIRED = "retired"
    LOST = "lost"
    STOLEN = "stolen"


class AssetCategory(str, Enum):
    """Known asset categories"""
    LAPTOP = "laptop"
    DESKTOP = "desktop"
    MONITOR = "monitor"
    PRINTER = "printer"
    PHONE = "phone"
    TABLET = "tablet"
    SERVER = "server"
    NETWORK_DEVICE = "network_device"
    SOFTWARE_LICENSE = "software_license"
    TONER = "toner"
    FURNITURE = "furniture"
    ACCESSORY = "accessory"
    OTHER = "other"


class AssetCondition(str, Enum):
    """Physical condition, recorded at creation and on return"""
    NEW = "new"
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    DAMAGED = "damaged"


class Asset(BaseModel):
    """A tracked physical or IT asset"""

    __tablename__ = "assets"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Unique identifiers
    asset_tag = Column(String(50), unique=True, nullable=False)  # e.g. "IT-LAP-0001"
    serial_number = Column(String(255), unique=True, nullable=True)
    name = Column(String(255), nullable=False)

    # Classification
    category = Column(String(50), nullable=False)
    manufacturer = Column(String(255), nullable=True)
    model = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    department = Column(String(100), nullable=True)

    # Status and lifecycle
    status = Column(String(20), nullable=False, default=AssetStatus.AVAILABLE.value)
    condition = Column(String(20), nullable=False, default=AssetCondition.GOOD.value)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_by = Column(String(255), ForeignKey("users.id"), nullable=True)

    # Constraints
    __table_args__ = (
        CheckConstraint(
            "status IN ('available', 'assigned', 'maintenance', 'repair', 'retired', 'lost', 'stolen')",
            name="ck_asset_status",
        ),
        CheckConstraint(
            "condition IN ('new', 'excellent', 'good', 'fair', 'poor', 'damaged')",
            name="ck_asset_condition",
        ),
        Index("idx_assets_status", "status"),
        Index("idx_assets_category", "category"),
    )

    def __repr__(self):
        return f"<Asset {self.asset_tag} status={self.status}>"


class AssetCounter(BaseModel):
    """Next tag number to hand out for a category"""

    __tablename__ = "asset_counters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category = Column(String(50), unique=True, nullable=False)
    next_number = Column(Integer, nullable=False, default=1)
    last_updated = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("next_number >= 1", name="ck_asset_counter_positive"),
    )
