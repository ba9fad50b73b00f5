"""
Database models for Custodian
"""

from custodian.models.user import User
from custodian.models.asset import Asset, AssetCounter
from custodian.models.assignment import Assignment
from custodian.models.audit import AuditLog

__all__ = [
    "User",
    "Asset",
    "AssetCounter",
    "Assignment",
    "AuditLog"
]
