"""
Persistence for generation jobs.

Every write after creation is a conditional UPDATE keyed on the status the
caller expects, so concurrent pollers (possibly in different processes) can
never move a job backwards or write two terminal states.
"""
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.generation_job import JOB_TRANSITIONS, GenerationJob, JobStatus


class JobStore:
    """Repository for generation job records."""

    @staticmethod
    async def create(db: AsyncSession, **fields) -> GenerationJob:
        """
        Add a job to the session and flush it. The caller commits.

        Returns:
            Created GenerationJob instance
        """
        job = GenerationJob(**fields)
        db.add(job)
        await db.flush()
        return job

    @staticmethod
    async def get(db: AsyncSession, job_id: str, fresh: bool = False) -> Optional[GenerationJob]:
        """
        Fetch a job by id.

        Args:
            db: Database session
            job_id: Job ID
            fresh: Reload from the database even if the row is already in the session
        """
        stmt = select(GenerationJob).where(GenerationJob.id == job_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_by_owner(
        db: AsyncSession,
        owner_id: str,
        status: Optional[str] = None,
        kind: Optional[str] = None,
        limit: int = 20,
    ) -> List[GenerationJob]:
        """Jobs for an owner, newest first."""
        stmt = select(GenerationJob).where(GenerationJob.owner_id == owner_id)
        if status:
            stmt = stmt.where(GenerationJob.status == status)
        if kind:
            stmt = stmt.where(GenerationJob.kind == kind)
        stmt = stmt.order_by(GenerationJob.created_at.desc()).limit(limit)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def update_progress(db: AsyncSession, job_id: str, progress: int) -> bool:
        """
        Raise progress on a processing job. Never lowers it.

        Returns:
            True if the row changed
        """
        result = await db.execute(
            update(GenerationJob)
            .where(GenerationJob.id == job_id)
            .where(GenerationJob.status == JobStatus.PROCESSING.value)
            .where(GenerationJob.progress < progress)
            .values(progress=progress, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount > 0

    @staticmethod
    async def claim(db: AsyncSession, job_id: str, token: str, lease_seconds: int) -> bool:
        """
        Take the resolution lease on a processing job.

        Succeeds when nobody holds the lease or the holder's lease expired.
        Only the holder may write the terminal state.

        Returns:
            True if this caller now holds the lease
        """
        now = utcnow()
        expired_before = now - timedelta(seconds=lease_seconds)

        result = await db.execute(
            update(GenerationJob)
            .where(GenerationJob.id == job_id)
            .where(GenerationJob.status == JobStatus.PROCESSING.value)
            .where(or_(
                GenerationJob.claim_token.is_(None),
                GenerationJob.claimed_at < expired_before,
            ))
            .values(claim_token=token, claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount > 0

    @staticmethod
    async def finalize(
        db: AsyncSession,
        job_id: str,
        token: str,
        status: JobStatus,
        output: Optional[dict] = None,
        error: Optional[str] = None,
    ) -> bool:
        """
        Write the terminal state if the caller still holds the lease.

        Does not commit: a completed job is finalized in the same transaction
        as its asset rows.

        Returns:
            True if the row changed
        """
        if status not in JOB_TRANSITIONS[JobStatus.PROCESSING]:
            raise ValueError(f"Cannot move a processing job to {status.value}")

        now = utcnow()
        values = {
            "status": status.value,
            "output": output,
            "error": error,
            "claim_token": None,
            "claimed_at": None,
            "completed_at": now,
            "updated_at": now,
        }
        if status == JobStatus.COMPLETED:
            values["progress"] = 100

        result = await db.execute(
            update(GenerationJob)
            .where(GenerationJob.id == job_id)
            .where(GenerationJob.status == JobStatus.PROCESSING.value)
            .where(GenerationJob.claim_token == token)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0
