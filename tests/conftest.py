import pytest

from moderation.domain.engine import ModerationEngine
from moderation.domain.models import SpeakerSet, Tick


@pytest.fixture
def make_engine():
    def _make(speakers=("A", "B"), **overrides):
        return ModerationEngine(list(speakers), overrides or None)

    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def run_ticks():
    def _run(engine, count, seconds=1):
        for _ in range(count):
            engine.send(Tick(seconds=seconds))
        return engine.snapshot()

    return _run


@pytest.fixture
def dominated_engine(make_engine, run_ticks):
    # A holds the floor alone until the engine escalates to structured turns (t=60).
    def _make(speakers=("A", "B")):
        engine = make_engine(speakers)
        engine.send(SpeakerSet(name=speakers[0]))
        run_ticks(engine, 60)
        return engine

    return _make


@pytest.fixture
def stub_advisor():
    from moderation.runners.langchain_advisor import StubAdvisor

    return StubAdvisor(
        phase_texts={"nudge": "slow down", "check_in": "carry on?"},
        fallback_texts={"waiting": "waiting..."},
    )


@pytest.fixture
def app(stub_advisor):
    from moderation.api.server import create_app

    return create_app(speakers=["A", "B"], advisor=stub_advisor)


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)
