from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import fakeredis
import pytest

from chronicle.api.models import AdjudicationRequest, AdjudicationResponse
from chronicle.generator.base import GeneratorError


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs.

    In CI we don't auto-load `.env`, so a developer's generator URL never leaks
    into hermetic runs. Opt in with CHRONICLE_LOAD_DOTENV_FOR_TESTS=1.
    """

    if os.environ.get("CI") and os.environ.get("CHRONICLE_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture(scope="session", autouse=True)
def _init_assets_from_test_fixtures() -> None:
    """Initialize assets from `tests/assets` and forbid the built-in fallback dataset."""

    os.environ["CHRONICLE_STRICT_ASSETS"] = "1"

    from chronicle.assets.singleton import init_assets, reset_assets_for_tests
    from chronicle.constraints.engine import reset_default_engine_for_tests

    reset_assets_for_tests()
    reset_default_engine_for_tests()

    # tests/ contains an assets/ dir, so it works as a fake project root.
    init_assets(project_root=Path(__file__).resolve().parent)


class ScriptedGenerator:
    """Generator double: replays queued responses (or raises queued errors) and records requests."""

    def __init__(self, *responses: AdjudicationResponse | GeneratorError) -> None:
        self.responses = list(responses)
        self.requests: list[AdjudicationRequest] = []

    def push(self, item: AdjudicationResponse | GeneratorError) -> None:
        self.responses.append(item)

    async def adjudicate(self, request: AdjudicationRequest) -> AdjudicationResponse:
        self.requests.append(request)
        if not self.responses:
            return AdjudicationResponse.model_validate({"result": {"narrative": "风过林梢，一切如常。", "effects": []}})
        item = self.responses.pop(0)
        if isinstance(item, GeneratorError):
            raise item
        return item


@pytest.fixture()
def fake_redis() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def manager(fake_redis: fakeredis.FakeRedis):
    from chronicle.save_store import SaveManager

    return SaveManager(r=fake_redis)


@pytest.fixture()
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture()
def client_and_redis(generator: ScriptedGenerator):
    """FastAPI TestClient wired to fakeredis and the scripted generator."""

    from fastapi.testclient import TestClient

    from chronicle.api.deps import get_feedback_log, get_generator, get_redis
    from chronicle.feedback import FeedbackLog
    from chronicle.main import app

    r = fakeredis.FakeRedis(decode_responses=True)
    feedback = FeedbackLog()

    def _override_redis() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override_redis
    app.dependency_overrides[get_generator] = lambda: generator
    app.dependency_overrides[get_feedback_log] = lambda: feedback
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
