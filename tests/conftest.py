import pytest

from mockinterview.config import settings

from tests.fakes import FakeTextGenerator, MemoryStore


@pytest.fixture(autouse=True)
def fast_timings(monkeypatch):
    monkeypatch.setattr(settings, "heartbeat_interval", 60.0)
    monkeypatch.setattr(settings, "listen_restart_delay", 0.02)
    monkeypatch.setattr(settings, "post_speech_delay", 0.01)
    monkeypatch.setattr(settings, "transient_retry_delay", 0.01)
    monkeypatch.setattr(settings, "unknown_retry_delay", 0.01)
    monkeypatch.setattr(settings, "speech_stop_timeout", 0.2)
    monkeypatch.setattr(settings, "probe_timeout", 0.5)
    monkeypatch.setattr(settings, "closing_timeout", 5.0)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def failing_generator():
    return FakeTextGenerator()
