"""
Generation service: the job state machine.

    submit     validate -> price -> authorize -> provider submit -> persist job + debit
    get_status terminal jobs are returned as stored; otherwise one poll, then
               progress update or a single terminal write

Job status only moves pending -> processing -> completed | failed. Concurrent
pollers race on a resolution lease (see JobStore.claim); only the lease holder
migrates results, creates assets and writes the terminal state.
"""
import logging
import time
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.base import (
    PROVIDER_COMPLETED,
    PROVIDER_FAILED,
    GenerationProvider,
)
from app.ai.catalog import ModelConfig, get_default_model, get_model
from app.ai.kinds import KindSpec, get_kind_spec, guess_extension
from app.config import settings
from app.models.base import generate_uuid
from app.models.generation_job import GenerationJob, JobKind, JobStatus, PROVIDER_HANDLES_KEY
from app.models.user import User
from app.services.asset_service import AssetService, asset_folder
from app.services.credit_service import CreditService
from app.services.exceptions import (
    GenerationError,
    InsufficientCredits,
    InvalidRequest,
    MigrationFailed,
    NotFound,
    PollingTransportError,
    ProviderUnavailable,
    Unauthorized,
)
from app.services.job_store import JobStore
from app.storage.migrator import AssetMigrator
from app.utils.logging import (
    log_asset_created,
    log_generation_completed,
    log_generation_failed,
    log_generation_progress,
    log_generation_submitted,
    log_migration_degraded,
)
from app.utils.metrics import (
    generation_credits_charged_total,
    generation_jobs_rejected_total,
    generation_jobs_resolved_total,
    generation_jobs_submitted_total,
    generation_resolution_conflicts_total,
)

logger = logging.getLogger(__name__)

CANCELLED_ERROR = "Cancelled by user"
NO_RESULTS_ERROR = "Provider returned no results"
MISSING_HANDLES_ERROR = "Job has no provider polling handles"
RESULT_ERROR = "Could not process provider result"

MAX_LIST_LIMIT = 100


def _validation_message(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return "Invalid parameters: " + "; ".join(parts)


class GenerationService:
    """Admits, tracks and resolves generation jobs for every kind."""

    def __init__(self, provider: GenerationProvider, migrator: AssetMigrator):
        self.provider = provider
        self.migrator = migrator

    # Admission

    def resolve_model(self, kind: JobKind, model_id: Optional[str], params) -> ModelConfig:
        """
        Catalog entry for a submission; the kind's default when model_id is omitted.

        Raises:
            InvalidRequest: Model not offered for this kind, or lacks the requested sub-mode or capability
        """
        sub_mode = getattr(params, "sub_mode", None)
        capability = getattr(params, "generation_type", None)
        if not model_id:
            return get_default_model(kind, sub_mode, capability)

        model = get_model(kind, model_id)
        if model is None:
            raise InvalidRequest(f"Unknown model for {kind.value}: {model_id}")
        if model.sub_mode and sub_mode and model.sub_mode != sub_mode:
            raise InvalidRequest(f"Model {model_id} does not support sub_mode {sub_mode}")
        if model.capabilities and capability and capability not in model.capabilities:
            raise InvalidRequest(f"Model {model_id} does not support {capability}")
        return model

    async def submit(
        self,
        db: AsyncSession,
        user: User,
        kind,
        model_id: Optional[str],
        parameters: Optional[dict],
    ) -> dict:
        """
        Admit a generation request.

        Nothing is persisted unless the provider accepted the request; the job
        row and the debit are committed together.

        Returns:
            dict with job_id, external_id, kind, model, status, credits_charged

        Raises:
            InvalidRequest: Unknown kind/model, bad parameters, or provider rejection
            InsufficientCredits: Balance below cost
            ProviderUnavailable: Provider unreachable
        """
        start_time = time.time()
        # Captured up front: a rollback below expires ORM state
        user_id, is_admin = user.id, user.is_admin

        try:
            kind = JobKind(kind)
        except ValueError:
            raise InvalidRequest(f"Unknown generation kind: {kind}")

        spec = get_kind_spec(kind)
        try:
            params = spec.parameters_model.model_validate(parameters or {})
        except ValidationError as e:
            generation_jobs_rejected_total.labels(kind=kind.value, reason="invalid_request").inc()
            raise InvalidRequest(_validation_message(e))

        model = self.resolve_model(kind, model_id, params)
        cost = CreditService.cost_for(model, params)

        try:
            await CreditService.authorize(db, user, cost)
        except InsufficientCredits:
            generation_jobs_rejected_total.labels(kind=kind.value, reason="insufficient_credits").inc()
            raise

        try:
            submission = await self.provider.submit(model.id, spec.build_payload(params, model))
        except InvalidRequest:
            generation_jobs_rejected_total.labels(kind=kind.value, reason="invalid_request").inc()
            raise
        except ProviderUnavailable:
            generation_jobs_rejected_total.labels(kind=kind.value, reason="provider_unavailable").inc()
            raise

        charged = 0 if is_admin else cost

        input_parameters = params.model_dump(mode="json", exclude_none=True)
        input_parameters[PROVIDER_HANDLES_KEY] = submission.to_handles()

        job = await JobStore.create(
            db,
            owner_id=user_id,
            external_id=submission.request_id,
            kind=kind.value,
            provider=self.provider.name,
            provider_model=model.id,
            input_parameters=input_parameters,
            status=JobStatus.PROCESSING.value,
            progress=0,
            credits_reserved=charged,
        )

        if charged and not await CreditService.debit(db, user_id, charged, commit=False):
            # Balance dropped between authorize and debit (concurrent submit)
            await db.rollback()
            available = await CreditService.get_balance(db, user_id)
            generation_jobs_rejected_total.labels(kind=kind.value, reason="insufficient_credits").inc()
            await self._cancel_at_provider(submission.cancel_url)
            raise InsufficientCredits(required=charged, available=available)

        await db.commit()

        generation_jobs_submitted_total.labels(kind=kind.value).inc()
        if charged:
            generation_credits_charged_total.labels(kind=kind.value).inc(charged)
        log_generation_submitted(
            logger,
            job_id=job.id,
            user_id=user_id,
            kind=kind.value,
            model=model.id,
            credits=charged,
            duration_ms=(time.time() - start_time) * 1000,
            external_id=submission.request_id,
        )

        return {
            "job_id": job.id,
            "external_id": submission.request_id,
            "kind": kind,
            "model": model.id,
            "status": JobStatus.PROCESSING,
            "credits_charged": charged,
        }

    # Reads

    async def get_job(self, db: AsyncSession, user: User, job_id: str) -> GenerationJob:
        """
        Raises:
            NotFound: No such job
            Unauthorized: Caller is neither the owner nor an admin
        """
        job = await JobStore.get(db, job_id)
        if not job:
            raise NotFound("Generation job not found")
        if job.owner_id != user.id and not user.is_admin:
            raise Unauthorized("Not authorized to access this generation job")
        return job

    async def list_jobs(
        self,
        db: AsyncSession,
        user: User,
        status: Optional[str] = None,
        kind: Optional[str] = None,
        limit: int = 20,
    ) -> List[GenerationJob]:
        if limit < 1 or limit > MAX_LIST_LIMIT:
            raise InvalidRequest(f"limit must be between 1 and {MAX_LIST_LIMIT}")
        return await JobStore.list_by_owner(db, user.id, status=status, kind=kind, limit=limit)

    async def get_status(self, db: AsyncSession, user: User, job_id: str) -> GenerationJob:
        """
        Current state of a job, advancing it by at most one poll.

        Terminal jobs are returned as stored, without provider calls.

        Raises:
            NotFound: No such job
            Unauthorized: Caller is neither the owner nor an admin
        """
        job = await self.get_job(db, user, job_id)
        if job.job_status.is_terminal:
            return job
        return await self._advance(db, job)

    # Resolution

    async def _advance(self, db: AsyncSession, job: GenerationJob) -> GenerationJob:
        handles = job.provider_handles
        status_url = handles.get("status_url")
        response_url = handles.get("response_url")

        if not status_url or not response_url:
            return await self._resolve_failed(db, job, MISSING_HANDLES_ERROR)

        try:
            status = await self.provider.poll(status_url, response_url)
        except PollingTransportError as e:
            return await self._resolve_failed(db, job, f"Provider polling failed: {e.message}")

        if status.status == PROVIDER_COMPLETED:
            return await self._resolve_completed(db, job, status.result or {})
        if status.status == PROVIDER_FAILED:
            return await self._resolve_failed(db, job, status.error or "Generation failed")

        progress = max(0, min(100, status.progress or 0))
        if progress > (job.progress or 0):
            await JobStore.update_progress(db, job.id, progress)
        log_generation_progress(
            logger, job_id=job.id, progress=progress,
            provider_status=status.status, queue_position=status.queue_position,
        )

        return await JobStore.get(db, job.id, fresh=True)

    async def _resolve_completed(self, db: AsyncSession, job: GenerationJob, result: dict) -> GenerationJob:
        start_time = time.time()
        job_id, kind, owner_id = job.id, job.kind, job.owner_id
        token = generate_uuid()
        if not await JobStore.claim(db, job_id, token, settings.resolution_lease_seconds):
            return await self._lost_race(db, job_id)

        try:
            assets, degraded_count = await self._create_assets(db, job, result)
        except Exception as e:
            # The lease is held: record the failure instead of leaving it to expire
            logger.error(f"Could not process result for job {job_id}: {e}", exc_info=True)
            await db.rollback()
            return await self._write_failed(db, job_id, kind, owner_id, token, f"{RESULT_ERROR}: {e}")

        if not assets:
            return await self._write_failed(db, job_id, kind, owner_id, token, NO_RESULTS_ERROR)

        output = self._build_output(get_kind_spec(kind), assets)

        if not await JobStore.finalize(db, job_id, token, JobStatus.COMPLETED, output=output):
            # Lease expired and another poller took over
            await db.rollback()
            return await self._lost_race(db, job_id)
        await db.commit()

        generation_jobs_resolved_total.labels(kind=kind, status=JobStatus.COMPLETED.value).inc()
        for asset in assets:
            log_asset_created(logger, asset_id=asset.id, user_id=owner_id, asset_type=asset.type, job_id=job_id)
        log_generation_completed(
            logger,
            job_id=job_id,
            user_id=owner_id,
            asset_count=len(assets),
            duration_ms=(time.time() - start_time) * 1000,
            degraded_count=degraded_count,
        )

        return await JobStore.get(db, job_id, fresh=True)

    async def _create_assets(self, db: AsyncSession, job: GenerationJob, result: dict):
        """Migrate each result item and add its Asset to the session. Returns (assets, degraded_count)."""
        spec = get_kind_spec(job.kind)
        items = spec.extract_results(result)

        params = job.input_parameters or {}
        assets = []
        degraded_count = 0

        for index, item in enumerate(items):
            filename = f"{job.kind}-{job.id[:8]}-{index}.{guess_extension(item.url, item.content_type, spec.asset_type)}"
            metadata = {**spec.provenance(params), **item.metadata}
            if len(items) > 1:
                metadata["batchIndex"] = index
                metadata["batchSize"] = len(items)

            try:
                storage_url = await self.migrator.migrate(
                    item.url, asset_folder(spec.asset_type, job.owner_id), filename, item.content_type
                )
            except MigrationFailed as e:
                log_migration_degraded(logger, job_id=job.id, source_url=item.url, error=e.message)
                storage_url = item.url
                metadata["storage_degraded"] = True
                metadata["ephemeral_url"] = item.url
                degraded_count += 1

            assets.append(AssetService.create(
                db,
                owner_id=job.owner_id,
                asset_type=spec.asset_type,
                storage_url=storage_url,
                filename=filename,
                source_job_id=job.id,
                prompt=spec.prompt_for(params),
                provider_model=job.provider_model,
                metadata=metadata,
            ))

        return assets, degraded_count

    @staticmethod
    def _build_output(spec: KindSpec, assets: list) -> dict:
        primary = assets[0]
        output = {
            "assetId": primary.id,
            "url": primary.storage_url,
            "type": spec.asset_type.value,
            "assets": [
                {"assetId": asset.id, "url": asset.storage_url, "degraded": asset.is_degraded}
                for asset in assets
            ],
        }
        if primary.is_degraded:
            output["degraded"] = True
        return output

    async def _resolve_failed(self, db: AsyncSession, job: GenerationJob, error: str) -> GenerationJob:
        token = generate_uuid()
        if not await JobStore.claim(db, job.id, token, settings.resolution_lease_seconds):
            return await self._lost_race(db, job.id)
        return await self._write_failed(db, job.id, job.kind, job.owner_id, token, error)

    async def _write_failed(
        self, db: AsyncSession, job_id: str, kind: str, owner_id: str, token: str, error: str
    ) -> GenerationJob:
        if not await JobStore.finalize(db, job_id, token, JobStatus.FAILED, error=error):
            await db.rollback()
            return await self._lost_race(db, job_id)
        await db.commit()

        generation_jobs_resolved_total.labels(kind=kind, status=JobStatus.FAILED.value).inc()
        log_generation_failed(logger, job_id=job_id, error=error, user_id=owner_id)

        return await JobStore.get(db, job_id, fresh=True)

    async def _lost_race(self, db: AsyncSession, job_id: str) -> GenerationJob:
        """Another poller holds the lease or already resolved the job: return what is stored."""
        generation_resolution_conflicts_total.inc()
        logger.info(f"Job {job_id} is being resolved by another request")
        return await JobStore.get(db, job_id, fresh=True)

    # Cancellation

    async def cancel(self, db: AsyncSession, user: User, job_id: str) -> GenerationJob:
        """
        Stop tracking a job and record it as failed.

        Provider cancellation is advisory. Terminal jobs are returned unchanged
        and credits are not refunded.
        """
        job = await self.get_job(db, user, job_id)
        if job.job_status.is_terminal:
            return job

        await self._cancel_at_provider(job.provider_handles.get("cancel_url"))
        return await self._resolve_failed(db, job, CANCELLED_ERROR)

    async def _cancel_at_provider(self, cancel_url: Optional[str]) -> None:
        if not cancel_url:
            return
        try:
            await self.provider.cancel(cancel_url)
        except GenerationError as e:
            logger.warning(f"Provider cancel failed for {cancel_url}: {e.message}")
