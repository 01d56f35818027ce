from __future__ import annotations

from collections.abc import Generator

import redis

from chronicle.config import constraint_settings_from_env
from chronicle.constraints.engine import HardConstraintEngine
from chronicle.feedback import FeedbackLog
from chronicle.generator.base import NarrativeGenerator
from chronicle.generator.factory import create_default_generator
from chronicle.infra.redis_client import create_redis

_FEEDBACK = FeedbackLog()


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        client.close()


def get_generator() -> NarrativeGenerator:
    return create_default_generator()


def get_feedback_log() -> FeedbackLog:
    return _FEEDBACK


_ENGINE: HardConstraintEngine | None = None


def get_engine() -> HardConstraintEngine:
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = HardConstraintEngine(settings=constraint_settings_from_env())
    return _ENGINE
