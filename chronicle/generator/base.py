from __future__ import annotations

from typing import Protocol

from chronicle.api.models import AdjudicationRequest, AdjudicationResponse


class GeneratorError(RuntimeError):
    pass


class GeneratorTransportError(GeneratorError):
    """Network failure, timeout or non-2xx status, after all retries."""


class GeneratorProtocolError(GeneratorError):
    """The generator answered, but not with the agreed response shape."""


class NarrativeGenerator(Protocol):
    async def adjudicate(self, request: AdjudicationRequest) -> AdjudicationResponse:  # pragma: no cover
        ...
