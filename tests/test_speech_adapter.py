import asyncio

import pytest

from mockinterview.exceptions import CapabilityError, MicrophonePermissionError, RecognitionError, SynthesisError
from mockinterview.voice.events import EventEmitter, EventKind
from mockinterview.voice.speech import Capabilities, SpeechAdapter

from tests.fakes import FakeSpeechBackend, wait_for


@pytest.fixture
def backend():
    return FakeSpeechBackend(auto=False)


@pytest.fixture
def emitter():
    return EventEmitter()


@pytest.fixture
def sinks():
    return {"utterances": [], "fatal": []}


@pytest.fixture
def adapter(backend, emitter, sinks):
    adapter = SpeechAdapter(backend, emitter)
    adapter.activate(
        should_listen=lambda: True,
        on_utterance=sinks["utterances"].append,
        on_fatal=sinks["fatal"].append
    )
    return adapter


def _count(backend, command):
    return sum(1 for c in backend.commands if c[0] == command)


async def test_missing_capabilities(emitter):
    backend = FakeSpeechBackend(Capabilities(recognition=True, synthesis=False, microphone=False))
    adapter = SpeechAdapter(backend, emitter)
    with pytest.raises(CapabilityError) as exc:
        await adapter.require_capabilities()
    assert exc.value.missing == ["synthesis", "microphone"]


class TestRecognition:
    def test_start_is_idempotent(self, adapter, backend):
        assert adapter.start_listening() is True
        assert adapter.start_listening() is False
        adapter.on_recognition_start()
        assert adapter.is_listening
        assert adapter.start_listening() is False
        assert _count(backend, "start-recognition") == 1

    def test_respects_should_listen(self, backend, emitter):
        adapter = SpeechAdapter(backend, emitter)
        adapter.activate(should_listen=lambda: False, on_utterance=lambda t: None, on_fatal=lambda e: None)
        assert adapter.start_listening() is False
        assert backend.commands == []

    def test_only_final_results_delivered(self, adapter, sinks):
        adapter.start_listening()
        adapter.on_recognition_start()
        adapter.on_recognition_result("I think", False)
        adapter.on_recognition_result("  I think React  ", True)
        adapter.on_recognition_result("   ", True)
        assert sinks["utterances"] == ["I think React"]

    def test_events(self, adapter, emitter):
        seen = []
        emitter.on(EventKind.LISTENING_START, lambda: seen.append("start"))
        emitter.on(EventKind.LISTENING_END, lambda: seen.append("end"))
        adapter.start_listening()
        adapter.on_recognition_start()
        adapter.stop_listening()
        adapter.on_recognition_end()
        assert seen == ["start", "end"]

    def test_late_start_after_stop_is_shut_down(self, adapter, backend):
        adapter.start_listening()
        adapter.stop_listening()
        adapter.on_recognition_start()
        assert not adapter.is_listening
        assert _count(backend, "stop-recognition") == 2


class TestRecognitionErrors:
    async def test_transient_error_retries(self, adapter, backend, sinks):
        adapter.start_listening()
        adapter.on_recognition_error("no-speech")
        await wait_for(lambda: _count(backend, "start-recognition") == 2)
        assert sinks["fatal"] == []

    def test_permission_error_is_fatal(self, adapter, emitter, sinks):
        errors = []
        emitter.on(EventKind.ERROR, errors.append)
        adapter.start_listening()
        adapter.on_recognition_error("not-allowed")
        assert isinstance(sinks["fatal"][0], MicrophonePermissionError)
        assert errors == sinks["fatal"]

    async def test_unknown_errors_give_up_after_retries(self, adapter, sinks):
        for _ in range(3):
            adapter.on_recognition_error("network")
        assert sinks["fatal"] == []
        adapter.on_recognition_error("network")
        error = sinks["fatal"][0]
        assert isinstance(error, RecognitionError)
        assert error.code == "network"
        assert error.attempts == 4

    async def test_result_resets_unknown_failures(self, adapter, sinks):
        for _ in range(3):
            adapter.on_recognition_error("network")
        adapter.start_listening()
        adapter.on_recognition_start()
        adapter.on_recognition_result("hello", True)
        adapter.on_recognition_error("network")
        assert sinks["fatal"] == []

    def test_ignored_when_inactive(self, adapter, sinks):
        adapter.deactivate()
        adapter.on_recognition_error("not-allowed")
        assert sinks["fatal"] == []


class TestSynthesis:
    async def test_no_listening_while_speaking(self, adapter, backend):
        task = asyncio.create_task(adapter.speak("Hello"))
        await wait_for(lambda: _count(backend, "speak") == 1)
        assert adapter.is_speaking
        assert adapter.start_listening() is False

        adapter.on_recognition_start()
        assert not adapter.is_listening

        adapter.on_synthesis_end(1)
        await task
        assert not adapter.is_speaking
        assert adapter.start_listening() is True

    async def test_speaking_stops_listening_first(self, adapter, backend):
        adapter.start_listening()
        adapter.on_recognition_start()
        task = asyncio.create_task(adapter.speak("Next question"))
        await wait_for(lambda: _count(backend, "stop-recognition") == 1)
        assert _count(backend, "speak") == 0

        adapter.on_recognition_end()
        await wait_for(lambda: _count(backend, "speak") == 1)
        assert not adapter.is_listening
        adapter.on_synthesis_end(1)
        await task

    async def test_stuck_recognition_is_forced_off(self, adapter, backend, emitter):
        ended = []
        emitter.on(EventKind.LISTENING_END, lambda: ended.append(True))
        adapter.start_listening()
        adapter.on_recognition_start()
        task = asyncio.create_task(adapter.speak("Hello"))
        await wait_for(lambda: _count(backend, "speak") == 1)
        assert ended == [True]
        assert not adapter.is_listening
        adapter.on_synthesis_end(1)
        await task

    async def test_interruption_is_not_an_error(self, adapter, backend):
        task = asyncio.create_task(adapter.speak("Hello"))
        await wait_for(lambda: _count(backend, "speak") == 1)
        adapter.on_synthesis_error(1, "interrupted")
        await task
        assert not adapter.is_speaking

    async def test_other_errors_raise(self, adapter, backend, emitter):
        ended = []
        emitter.on(EventKind.SPEECH_END, lambda: ended.append(True))
        task = asyncio.create_task(adapter.speak("Hello"))
        await wait_for(lambda: _count(backend, "speak") == 1)
        adapter.on_synthesis_error(1, "synthesis-failed")
        with pytest.raises(SynthesisError):
            await task
        assert ended == [True]
        assert not adapter.is_speaking

    async def test_new_utterance_cancels_current(self, adapter, backend):
        first = asyncio.create_task(adapter.speak("First"))
        await wait_for(lambda: _count(backend, "speak") == 1)
        second = asyncio.create_task(adapter.speak("Second"))
        await first
        await wait_for(lambda: _count(backend, "speak") == 2)
        assert _count(backend, "cancel-speech") == 1

        # A late end event for the cancelled utterance changes nothing.
        adapter.on_synthesis_end(1)
        assert adapter.is_speaking
        adapter.on_synthesis_end(2)
        await second

    async def test_deactivate_releases_waiting_speaker(self, adapter, backend):
        task = asyncio.create_task(adapter.speak("Hello"))
        await wait_for(lambda: _count(backend, "speak") == 1)
        adapter.deactivate()
        await task
        assert not adapter.is_speaking
        assert await adapter.speak("ignored") is None
        assert _count(backend, "speak") == 1
