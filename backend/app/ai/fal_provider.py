"""
Fal.ai queue provider.
Submits requests to the Fal queue API and polls them via the status/response
URLs returned at submission time, which works for every model regardless of
its endpoint layout.
"""
import json
import logging
import re
import time
from typing import Any, Dict, Optional

import httpx

from app.ai.base import (
    GenerationProvider,
    ProviderStatus,
    ProviderSubmission,
    PROVIDER_COMPLETED,
    PROVIDER_FAILED,
    PROVIDER_PROCESSING,
    PROVIDER_QUEUED,
)
from app.config import settings
from app.services.exceptions import InvalidRequest, PollingTransportError, ProviderUnavailable
from app.utils.logging import log_provider_failure, log_provider_request
from app.utils.metrics import provider_failures_total, provider_latency_seconds, provider_requests_total

logger = logging.getLogger(__name__)

# Fal queue status -> provider vocabulary
FAL_STATUS_MAP = {
    "IN_QUEUE": PROVIDER_QUEUED,
    "IN_PROGRESS": PROVIDER_PROCESSING,
    "COMPLETED": PROVIDER_COMPLETED,
    "FAILED": PROVIDER_FAILED,
}

CONTENT_POLICY_MESSAGE = (
    "Content policy violation: Your prompt was flagged by the content checker. "
    "Please modify your prompt and try again."
)
DOWNSTREAM_ERROR_MESSAGE = "The AI service encountered an error. Please try again later."

PERCENT_RE = re.compile(r"(\d{1,3})\s*%")


class FalQueueProvider(GenerationProvider):
    """
    Fal.ai queue API client.

    Uses a shared httpx.AsyncClient. The client can be injected for tests
    (httpx.MockTransport) or to share a connection pool.
    """

    name = "fal"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.fal_key
        self.base_url = (base_url or settings.fal_queue_url).rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=timeout or settings.provider_timeout_seconds
        )

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Key {self.api_key}"}

    async def aclose(self) -> None:
        await self._client.aclose()

    def _record(self, operation: str, start_time: float, **kwargs) -> None:
        duration = time.time() - start_time
        provider_latency_seconds.labels(provider=self.name, operation=operation).observe(duration)
        log_provider_request(logger, provider=self.name, operation=operation, duration_ms=duration * 1000, **kwargs)

    def _fail(self, operation: str, error: str) -> None:
        provider_failures_total.labels(provider=self.name, operation=operation).inc()
        log_provider_failure(logger, provider=self.name, operation=operation, error=error)

    async def submit(self, model_id: str, payload: Dict[str, Any]) -> ProviderSubmission:
        """Queue a request at {base_url}/{model_id}."""
        if not self.is_configured():
            raise ProviderUnavailable("FAL_KEY not configured")

        submit_url = f"{self.base_url}/{model_id}"
        start_time = time.time()
        provider_requests_total.labels(provider=self.name, operation="submit").inc()

        try:
            response = await self._client.post(
                submit_url,
                headers={**self._headers, "Content-Type": "application/json"},
                json=payload,
            )
        except httpx.HTTPError as e:
            self._fail("submit", str(e))
            raise ProviderUnavailable(f"Fal.ai unreachable: {e}") from e

        if response.status_code >= 500 or response.status_code == 429:
            self._fail("submit", f"{response.status_code} {response.text}")
            raise ProviderUnavailable(f"Fal.ai error: {response.status_code} - {response.text}")
        if response.status_code >= 400:
            self._fail("submit", f"{response.status_code} {response.text}")
            raise InvalidRequest(f"Fal.ai error: {response.status_code} - {response.text}")

        try:
            data = response.json()
            submission = ProviderSubmission(
                request_id=data["request_id"],
                status_url=data["status_url"],
                response_url=data["response_url"],
                cancel_url=data.get("cancel_url"),
            )
        except (ValueError, KeyError) as e:
            self._fail("submit", f"malformed queue response: {e}")
            raise ProviderUnavailable(f"Fal.ai returned an unexpected submit response: {e}") from e

        self._record("submit", start_time, model=model_id, request_id=submission.request_id)
        return submission

    async def poll(self, status_url: str, response_url: str) -> ProviderStatus:
        """Fetch status; when COMPLETED, fetch the result from response_url."""
        if not self.is_configured():
            raise PollingTransportError("FAL_KEY not configured")

        start_time = time.time()
        provider_requests_total.labels(provider=self.name, operation="status").inc()

        try:
            response = await self._client.get(status_url, headers=self._headers, params={"logs": 1})
        except httpx.HTTPError as e:
            self._fail("status", str(e))
            raise PollingTransportError(f"Status check failed: {e}") from e

        # 404 means the request expired or was never created
        if response.status_code == 404:
            self._fail("status", "request not found")
            return ProviderStatus(status=PROVIDER_FAILED, error="Request not found or expired")

        if not response.is_success:
            self._fail("status", f"{response.status_code} {response.text}")
            raise PollingTransportError(f"Failed to get status: {response.status_code} - {response.text}")

        try:
            data = response.json()
            if not isinstance(data, dict):
                raise TypeError(f"expected an object, got {type(data).__name__}")
            status = FAL_STATUS_MAP[data["status"]]
        except (ValueError, KeyError, TypeError) as e:
            self._fail("status", f"unexpected status payload: {e}")
            raise PollingTransportError(f"Unexpected status response: {e}") from e

        self._record("status", start_time, provider_status=data.get("status"))

        if status == PROVIDER_FAILED:
            return ProviderStatus(status=status, error=data.get("error") or "Generation failed")

        if status != PROVIDER_COMPLETED:
            return ProviderStatus(
                status=status,
                progress=_progress_from_logs(data),
                queue_position=data.get("queue_position"),
            )

        return await self._fetch_result(response_url)

    async def _fetch_result(self, response_url: str) -> ProviderStatus:
        start_time = time.time()
        provider_requests_total.labels(provider=self.name, operation="result").inc()

        try:
            response = await self._client.get(response_url, headers=self._headers)
        except httpx.HTTPError as e:
            self._fail("result", str(e))
            raise PollingTransportError(f"Result fetch failed: {e}") from e

        if not response.is_success:
            self._fail("result", f"{response.status_code} {response.text}")
            return ProviderStatus(status=PROVIDER_FAILED, error=_result_error_message(response))

        try:
            result = response.json()
        except ValueError as e:
            self._fail("result", f"invalid JSON: {e}")
            raise PollingTransportError(f"Result was not valid JSON: {e}") from e

        if not isinstance(result, dict):
            self._fail("result", f"unexpected result type: {type(result).__name__}")
            raise PollingTransportError(f"Unexpected result payload: expected an object, got {type(result).__name__}")

        self._record("result", start_time)
        return ProviderStatus(status=PROVIDER_COMPLETED, progress=100, result=result)

    async def cancel(self, cancel_url: str) -> bool:
        if not self.is_configured():
            return False

        provider_requests_total.labels(provider=self.name, operation="cancel").inc()
        try:
            response = await self._client.put(cancel_url, headers=self._headers)
        except httpx.HTTPError as e:
            self._fail("cancel", str(e))
            return False

        logger.info(f"Fal.ai cancel response: {response.status_code}")
        return response.is_success


def _progress_from_logs(data: Dict[str, Any]) -> Optional[int]:
    """
    Best-effort progress. Fal exposes no percentage; some models log
    "NN%" lines, otherwise fall back to coarse values per state.
    """
    for entry in reversed(data.get("logs") or []):
        message = str(entry.get("message", "")) if isinstance(entry, dict) else ""
        match = PERCENT_RE.search(message)
        if match:
            return min(99, int(match.group(1)))
    if data.get("status") == "IN_PROGRESS":
        return 50
    return 10


def _result_error_message(response: httpx.Response) -> str:
    """Map result-fetch errors to user-facing messages."""
    try:
        error_data = response.json()
    except ValueError:
        return f"Failed to get result: {response.status_code}"

    detail = error_data.get("detail") if isinstance(error_data, dict) else None
    if isinstance(detail, list) and detail:
        detail = detail[0]
    if isinstance(detail, dict):
        if detail.get("type") == "content_policy_violation":
            return CONTENT_POLICY_MESSAGE
        if detail.get("type") == "downstream_service_error":
            return DOWNSTREAM_ERROR_MESSAGE
        if detail.get("msg"):
            return str(detail["msg"])
    if isinstance(detail, str):
        return detail
    return f"Request failed: {response.status_code} - {json.dumps(error_data)[:200]}"
