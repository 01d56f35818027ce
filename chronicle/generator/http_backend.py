from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from chronicle.api.models import AdjudicationRequest, AdjudicationResponse
from chronicle.config import GeneratorSettings
from chronicle.generator.base import GeneratorProtocolError, GeneratorTransportError

logger = logging.getLogger(__name__)

EMPTY_NARRATIVE_PLACEHOLDER = "四下一片沉寂，一时间似乎什么也没有发生。"


def parse_response(response: httpx.Response) -> AdjudicationResponse:
    try:
        data = response.json()
    except ValueError as e:
        raise GeneratorProtocolError("Generator response is not JSON") from e

    if not isinstance(data, dict) or data.get("result") is None:
        raise GeneratorProtocolError("Generator response has no result")

    try:
        parsed = AdjudicationResponse.model_validate(data)
    except ValidationError as e:
        raise GeneratorProtocolError(f"Generator response has an unexpected shape: {e.error_count()} errors") from e

    assert parsed.result is not None
    if not (parsed.result.narrative or "").strip():
        parsed.result.narrative = EMPTY_NARRATIVE_PLACEHOLDER
    return parsed


@dataclass(slots=True)
class HttpGenerator:
    """POSTs the request payload to an HTTP generator service.

    Transport failures (connection errors, timeouts, non-2xx) are retried
    `max_retries` times with a fixed delay; attempt N+1 starts only after
    attempt N has failed. Protocol failures are raised immediately.
    """

    settings: GeneratorSettings
    transport: httpx.AsyncBaseTransport | None = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def adjudicate(self, request: AdjudicationRequest) -> AdjudicationResponse:
        url = self.settings.url
        if not url:
            raise GeneratorTransportError("No generator URL configured (set CHRONICLE_GENERATOR_URL)")

        body = request.to_wire()
        attempts = 1 + max(0, self.settings.max_retries)
        last_exc: Exception | None = None
        failure = ""

        async with httpx.AsyncClient(timeout=self.settings.timeout_s, transport=self.transport) as client:
            for attempt in range(1, attempts + 1):
                try:
                    response = await client.post(url, json=body)
                except httpx.HTTPError as e:
                    last_exc = e
                    failure = type(e).__name__
                else:
                    if response.is_success:
                        return parse_response(response)
                    last_exc = None
                    failure = f"HTTP {response.status_code}"

                logger.warning("Generator attempt %s/%s failed: %s", attempt, attempts, failure)
                if attempt < attempts:
                    await self.sleep(self.settings.retry_delay_s)

        raise GeneratorTransportError(f"Generator unavailable after {attempts} attempts ({failure})") from last_exc
