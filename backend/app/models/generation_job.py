"""
GenerationJob model tracking one unit of work submitted to the generation provider.

Lifecycle:
1. Provider accepts the submission -> status="processing" (credits debited in the same transaction)
2. Status polls update progress while the provider works
3. Exactly one poller writes the terminal state -> "completed" (output set) or "failed" (error set)

input_parameters is schema-less on purpose, but always carries the provider
polling handles under the "provider" key (status_url, response_url, cancel_url).
"""
import enum
from sqlalchemy import Column, String, Integer, DateTime, Text, JSON, ForeignKey, Index

from app.models.base import Base, generate_uuid, utcnow


class JobStatus(str, enum.Enum):
    """Generation job status. Transitions only move forward."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Allowed forward transitions
JOB_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.PROCESSING, JobStatus.FAILED},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


class JobKind(str, enum.Enum):
    """Closed set of generation kinds."""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    AGING = "aging"
    UPSCALE = "upscale"
    VARIATION = "variation"
    EDIT = "edit"


# Key inside input_parameters holding the provider polling handles
PROVIDER_HANDLES_KEY = "provider"


class GenerationJob(Base):
    """GenerationJob model with persisted provider handles for resumable polling."""

    __tablename__ = "generation_jobs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    external_id = Column(String(255), nullable=True)  # Provider request id

    kind = Column(String(16), nullable=False)
    provider = Column(String(32), nullable=False, default="fal")
    provider_model = Column(String(255), nullable=False)
    input_parameters = Column(JSON, nullable=False)

    status = Column(String(16), nullable=False, default=JobStatus.PENDING.value)
    progress = Column(Integer, nullable=False, default=0)
    credits_reserved = Column(Integer, nullable=False, default=0)
    output = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)

    # Resolution lease: set by the poller allowed to write the terminal state
    claim_token = Column(String(36), nullable=True)
    claimed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_generation_jobs_owner_created", "owner_id", "created_at"),
        Index("ix_generation_jobs_status", "status"),
    )

    @property
    def job_status(self) -> JobStatus:
        return JobStatus(self.status)

    @property
    def provider_handles(self) -> dict:
        return (self.input_parameters or {}).get(PROVIDER_HANDLES_KEY) or {}

    def __repr__(self):
        return f"<GenerationJob(id={self.id}, kind={self.kind}, status={self.status}, progress={self.progress})>"
