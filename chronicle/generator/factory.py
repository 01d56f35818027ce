from __future__ import annotations

from chronicle.config import generator_settings_from_env
from chronicle.generator.base import NarrativeGenerator
from chronicle.generator.http_backend import HttpGenerator


def create_default_generator() -> NarrativeGenerator:
    """Create the HTTP-backed generator client.

    Reads CHRONICLE_GENERATOR_URL, CHRONICLE_GENERATOR_TIMEOUT,
    CHRONICLE_GENERATOR_MAX_RETRIES and CHRONICLE_GENERATOR_RETRY_DELAY.
    """

    return HttpGenerator(settings=generator_settings_from_env())
