"""
Production logging utility for structured JSON logging.

Provides event-specific logging functions with mandatory fields:
- timestamp (ISO8601)
- level
- service
- event

Optional fields (included when applicable):
- job_id
- user_id
- asset_id
- duration_ms

Usage:
    from app.utils.logging import configure_logging, log_generation_submitted

    configure_logging('cinevido-api', 'INFO')
    log_generation_submitted(logger, job_id='123', user_id='456', kind='image', model='fal-ai/flux/dev', credits=3)
"""
import logging
import sys
from typing import Optional, Dict, Any
from pythonjsonlogger import jsonlogger


class StructuredLogger:
    """Structured JSON logger with mandatory fields."""

    _service_name = None
    _configured = False

    @classmethod
    def configure(cls, service_name: str, log_level: str = "INFO"):
        """
        Configure structured JSON logging for the application.

        Args:
            service_name: Service identifier
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        if cls._configured:
            return

        cls._service_name = service_name

        root_logger = logging.getLogger()
        root_logger.handlers = []

        formatter = jsonlogger.JsonFormatter(
            '%(timestamp)s %(levelname)s %(name)s %(message)s',
            timestamp=True,
            json_ensure_ascii=False
        )

        # Console handler (container logs)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)

        root_logger.addHandler(handler)
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        class ServiceFilter(logging.Filter):
            def filter(self, record):
                record.service = cls._service_name
                return True

        handler.addFilter(ServiceFilter())
        cls._configured = True


def _build_log_extra(
    event: str,
    job_id: Optional[str] = None,
    user_id: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Build extra fields for structured logging.

    Args:
        event: Event name (mandatory)
        job_id: Optional generation job ID
        user_id: Optional user ID
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields (None values are dropped)

    Returns:
        Dictionary of extra fields
    """
    extra = {"event": event}
    extra.update({k: v for k, v in kwargs.items() if v is not None})

    if job_id:
        extra["job_id"] = job_id
    if user_id:
        extra["user_id"] = user_id
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    return extra


# Generation job event functions

def log_generation_submitted(
    logger: logging.Logger,
    job_id: str,
    user_id: str,
    kind: str,
    model: str,
    credits: int,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """
    Log an accepted generation submission (job persisted and credits debited).

    Args:
        logger: Logger instance
        job_id: Local job ID (required)
        user_id: Owner ID (required)
        kind: Job kind
        model: Provider model ID
        credits: Credits charged (0 for admins)
        duration_ms: Optional admission duration
    """
    extra = _build_log_extra(
        event="generation_submitted",
        job_id=job_id,
        user_id=user_id,
        duration_ms=duration_ms,
        kind=kind,
        model=model,
        credits=credits,
        **kwargs
    )
    logger.info(f"Generation submitted: {job_id} ({kind}, {credits} credits)", extra=extra)


def log_generation_progress(
    logger: logging.Logger,
    job_id: str,
    progress: int,
    provider_status: Optional[str] = None,
    **kwargs
):
    """Log a non-terminal poll result."""
    extra = _build_log_extra(
        event="generation_progress",
        job_id=job_id,
        progress=progress,
        provider_status=provider_status,
        **kwargs
    )
    logger.debug(f"Generation progress: {job_id} {progress}%", extra=extra)


def log_generation_completed(
    logger: logging.Logger,
    job_id: str,
    user_id: str,
    asset_count: int,
    duration_ms: Optional[float] = None,
    degraded_count: int = 0,
    **kwargs
):
    """
    Log a job reaching the completed state.

    Args:
        logger: Logger instance
        job_id: Job ID (required)
        user_id: Owner ID (required)
        asset_count: Number of assets created from the result
        duration_ms: Optional resolve duration
        degraded_count: Assets left pointing at provider URLs
    """
    extra = _build_log_extra(
        event="generation_completed",
        job_id=job_id,
        user_id=user_id,
        duration_ms=duration_ms,
        asset_count=asset_count,
        degraded_count=degraded_count,
        **kwargs
    )
    logger.info(f"Generation completed: {job_id} ({asset_count} assets)", extra=extra)


def log_generation_failed(
    logger: logging.Logger,
    job_id: str,
    error: str,
    user_id: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """Log a job reaching the failed state."""
    extra = _build_log_extra(
        event="generation_failed",
        job_id=job_id,
        user_id=user_id,
        duration_ms=duration_ms,
        error=str(error),
        **kwargs
    )
    logger.warning(f"Generation failed: {job_id} - {error}", extra=extra)


# Provider event functions

def log_provider_request(
    logger: logging.Logger,
    provider: str,
    operation: str,
    duration_ms: Optional[float] = None,
    job_id: Optional[str] = None,
    **kwargs
):
    """
    Log a generation provider request.

    Args:
        logger: Logger instance
        provider: Provider name (required)
        operation: submit, status, result, cancel (required)
        duration_ms: Optional duration in milliseconds
        job_id: Optional job ID
    """
    extra = _build_log_extra(
        event="provider_request",
        job_id=job_id,
        duration_ms=duration_ms,
        provider=provider,
        operation=operation,
        **kwargs
    )
    logger.info(f"Provider request: {provider}.{operation}", extra=extra)


def log_provider_failure(
    logger: logging.Logger,
    provider: str,
    operation: str,
    error: str,
    duration_ms: Optional[float] = None,
    job_id: Optional[str] = None,
    **kwargs
):
    """Log a failed provider call (transport error or non-success response)."""
    extra = _build_log_extra(
        event="provider_failure",
        job_id=job_id,
        duration_ms=duration_ms,
        provider=provider,
        operation=operation,
        error=str(error),
        **kwargs
    )
    logger.error(f"Provider failure: {provider}.{operation} - {error}", extra=extra)


# Storage / asset event functions

def log_migration_degraded(
    logger: logging.Logger,
    job_id: str,
    source_url: str,
    error: str,
    **kwargs
):
    """Log a provider result that could not be copied to durable storage."""
    extra = _build_log_extra(
        event="migration_degraded",
        job_id=job_id,
        source_url=source_url,
        error=str(error),
        **kwargs
    )
    logger.warning(f"Migration degraded for job {job_id}, keeping provider URL: {error}", extra=extra)


def log_asset_created(
    logger: logging.Logger,
    asset_id: str,
    user_id: str,
    asset_type: str,
    job_id: Optional[str] = None,
    **kwargs
):
    """Log asset creation (generated or uploaded)."""
    extra = _build_log_extra(
        event="asset_created",
        job_id=job_id,
        user_id=user_id,
        asset_id=asset_id,
        asset_type=asset_type,
        **kwargs
    )
    logger.info(f"Asset created: {asset_id}", extra=extra)


def log_asset_deleted(
    logger: logging.Logger,
    asset_id: str,
    user_id: str,
    storage_removed: bool,
    **kwargs
):
    """Log asset deletion."""
    extra = _build_log_extra(
        event="asset_deleted",
        user_id=user_id,
        asset_id=asset_id,
        storage_removed=storage_removed,
        **kwargs
    )
    logger.info(f"Asset deleted: {asset_id}", extra=extra)


def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure logging (alias for StructuredLogger.configure)."""
    StructuredLogger.configure(service_name, log_level)
