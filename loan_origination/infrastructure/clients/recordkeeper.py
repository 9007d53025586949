"""Recordkeeper webhook client with exponential backoff retry logic"""

import asyncio
from typing import Any, Dict

import httpx

from loan_origination.config import settings
from loan_origination.domain.exceptions import SubmissionDeliveryError
from loan_origination.infrastructure.observability.metrics import webhook_failure_counter, webhook_latency_histogram


class RecordkeeperClient:
    """Client for handing confirmed loan submissions to the recordkeeping service"""

    def __init__(
        self,
        webhook_url: str | None = None,
        timeout: float | None = None,
        backoff_base: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = webhook_url or settings.recordkeeper_webhook_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base if backoff_base is None else backoff_base
        self.transport = transport

    async def send_submission_event(self, payload: Dict[str, Any]) -> None:
        """
        Deliver a PLAN_LOAN_SUBMITTED event with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^(attempt-1))
        - Retries on HTTP errors and network failures
        - Tracks latency histogram and failure counter

        Raises:
            SubmissionDeliveryError: still failing after max_retries attempts
        """
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        raise SubmissionDeliveryError(
                            f"Submission {payload.get('application_id')} not delivered after {attempt} attempts"
                        ) from e

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
