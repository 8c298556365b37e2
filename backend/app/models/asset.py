"""
Asset model for durable generated or uploaded media.

storage_url points at durable storage (R2/CDN). When migration from the
provider failed, it holds the provider URL instead and metadata carries
"storage_degraded": true so callers can find and repair those rows.
"""
import enum
from sqlalchemy import Column, String, DateTime, Text, JSON, ForeignKey, Index

from app.models.base import Base, generate_uuid, utcnow


class AssetType(str, enum.Enum):
    """Type of stored media."""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    MODEL_3D = "3d"


class Asset(Base):
    """Durable content artifact owned by a user."""

    __tablename__ = "assets"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    type = Column(String(16), nullable=False)
    storage_url = Column(Text, nullable=False)
    filename = Column(String(255), nullable=False)

    # Null for direct uploads
    source_job_id = Column(String(36), ForeignKey("generation_jobs.id"), nullable=True)
    prompt = Column(Text, nullable=True)
    provider_model = Column(String(255), nullable=True)
    # "metadata" is reserved on declarative classes
    asset_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_assets_owner_type_created", "owner_id", "type", "created_at"),
        Index("ix_assets_source_job", "source_job_id"),
    )

    @property
    def is_degraded(self) -> bool:
        return bool((self.asset_metadata or {}).get("storage_degraded"))

    def __repr__(self):
        return f"<Asset(id={self.id}, owner_id={self.owner_id}, type={self.type})>"
