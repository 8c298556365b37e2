"""
Database models package.
"""
from app.models.base import Base
from app.models.user import User, UserRole
from app.models.generation_job import GenerationJob, JobStatus, JobKind
from app.models.asset import Asset, AssetType

__all__ = [
    "Base",
    "User",
    "UserRole",
    "GenerationJob",
    "JobStatus",
    "JobKind",
    "Asset",
    "AssetType",
]
