"""Speech recognition and synthesis behind a start/stop/speak interface."""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from mockinterview.config import settings
from mockinterview.exceptions import (
    CapabilityError,
    MicrophonePermissionError,
    RecognitionError,
    SynthesisError,
)
from mockinterview.voice.events import EventEmitter, EventKind

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = frozenset({"no-speech", "audio-capture", "aborted"})
PERMISSION_ERRORS = frozenset({"not-allowed", "service-not-allowed"})
INTERRUPTED_ERRORS = frozenset({"interrupted", "canceled"})


@dataclass(frozen=True)
class Capabilities:
    recognition: bool
    synthesis: bool
    microphone: bool

    def missing(self) -> List[str]:
        return [name for name in ("recognition", "synthesis", "microphone") if not getattr(self, name)]


class SpeechBackend(ABC):
    """Raw speech engine.

    Commands return immediately. The backend reports what actually happened by
    calling the bound adapter's on_* callbacks, the way a browser fires events.
    """

    adapter: Optional["SpeechAdapter"] = None

    def bind(self, adapter: "SpeechAdapter") -> None:
        self.adapter = adapter

    @abstractmethod
    async def probe(self) -> Capabilities:
        ...

    @abstractmethod
    def start_recognition(self) -> None:
        ...

    @abstractmethod
    def stop_recognition(self) -> None:
        ...

    @abstractmethod
    def synthesize(self, utterance_id: int, text: str) -> None:
        ...

    @abstractmethod
    def cancel_synthesis(self) -> None:
        ...


class SpeechAdapter:
    """Keeps listening and speaking mutually exclusive and classifies speech errors.

    The owner activates the adapter with three callbacks: a predicate saying
    whether listening is wanted right now, a sink for final utterances and a
    sink for fatal errors.
    """

    def __init__(self, backend: SpeechBackend, emitter: EventEmitter):
        self.backend = backend
        self.emitter = emitter
        self.backend.bind(self)

        self.active = False
        self.listening = False
        self.speaking = False
        self._recognition_pending = False
        self._stop_requested = False
        self._stop_waiter: Optional[asyncio.Future] = None

        self._utterance_seq = 0
        self._current_utterance: Optional[int] = None
        self._pending_speech: Dict[int, asyncio.Future] = {}

        self._unknown_failures = 0
        self._retry: Optional[asyncio.TimerHandle] = None

        self._should_listen: Callable[[], bool] = lambda: True
        self._on_utterance: Callable[[str], None] = lambda text: None
        self._on_fatal: Callable[[Exception], None] = lambda error: None

    @property
    def is_listening(self) -> bool:
        return self.listening

    @property
    def is_speaking(self) -> bool:
        return self.speaking

    async def require_capabilities(self) -> Capabilities:
        capabilities = await self.backend.probe()
        missing = capabilities.missing()
        if missing:
            raise CapabilityError(missing)
        return capabilities

    def activate(
        self,
        should_listen: Callable[[], bool],
        on_utterance: Callable[[str], None],
        on_fatal: Callable[[Exception], None]
    ) -> None:
        self._should_listen = should_listen
        self._on_utterance = on_utterance
        self._on_fatal = on_fatal
        self._unknown_failures = 0
        self.active = True

    def deactivate(self) -> None:
        """Stop recognition and synthesis. Safe to call repeatedly."""
        self.active = False
        self._cancel_retry()
        self.stop_listening()
        self.cancel_speech()

    # Recognition

    def start_listening(self) -> bool:
        """Ask the backend to start recognition. Returns False when it was a no-op."""
        if not self.active or self.listening or self._recognition_pending or self.speaking:
            return False
        if not self._should_listen():
            return False
        self._cancel_retry()
        self._stop_requested = False
        self._recognition_pending = True
        logger.debug("Starting speech recognition")
        self.backend.start_recognition()
        return True

    def stop_listening(self) -> None:
        if self.listening or self._recognition_pending:
            self._stop_requested = True
            self.backend.stop_recognition()

    async def _wait_until_not_listening(self) -> None:
        if not (self.listening or self._recognition_pending):
            return
        self._stop_waiter = asyncio.get_running_loop().create_future()
        self.stop_listening()
        try:
            await asyncio.wait_for(asyncio.shield(self._stop_waiter), settings.speech_stop_timeout)
        except asyncio.TimeoutError:
            logger.warning("Recognition did not report its end in time, forcing it off")
        finally:
            self._stop_waiter = None
            self._recognition_pending = False
            if self.listening:
                self.listening = False
                self.emitter.emit(EventKind.LISTENING_END)

    def on_recognition_start(self) -> None:
        self._recognition_pending = False
        if not self.active or self.speaking or self._stop_requested:
            # Started after we moved on; shut it straight down.
            self.backend.stop_recognition()
            return
        self.listening = True
        self.emitter.emit(EventKind.LISTENING_START)

    def on_recognition_result(self, transcript: str, is_final: bool) -> None:
        if not is_final or not self.listening:
            return
        text = transcript.strip()
        if not text:
            return
        self._unknown_failures = 0
        self._on_utterance(text)

    def on_recognition_end(self) -> None:
        self._recognition_pending = False
        was_listening = self.listening
        self.listening = False
        if self._stop_waiter is not None and not self._stop_waiter.done():
            self._stop_waiter.set_result(None)
        if was_listening:
            self.emitter.emit(EventKind.LISTENING_END)

    def on_recognition_error(self, code: str) -> None:
        self._recognition_pending = False
        if not self.active:
            return

        if code in TRANSIENT_ERRORS:
            logger.info(f"Recognition hiccup ({code}), retrying")
            self._schedule_retry(settings.transient_retry_delay)
            return

        if code in PERMISSION_ERRORS:
            logger.error(f"Recognition permission error: {code}")
            self._cancel_retry()
            error = MicrophonePermissionError()
            self.emitter.emit(EventKind.ERROR, error)
            self._on_fatal(error)
            return

        self._unknown_failures += 1
        if self._unknown_failures > settings.max_recognition_retries:
            logger.error(f"Recognition error {code} persisted, giving up")
            self._cancel_retry()
            error = RecognitionError(code, self._unknown_failures)
            self.emitter.emit(EventKind.ERROR, error)
            self._on_fatal(error)
            return
        delay = settings.unknown_retry_delay * 2 ** (self._unknown_failures - 1)
        logger.warning(f"Recognition error {code}, retry {self._unknown_failures} in {delay}s")
        self._schedule_retry(delay)

    def _schedule_retry(self, delay: float) -> None:
        self._cancel_retry()
        self._retry = asyncio.get_running_loop().call_later(delay, self._retry_listening)

    def _retry_listening(self) -> None:
        self._retry = None
        self.start_listening()

    def _cancel_retry(self) -> None:
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None

    # Synthesis

    async def speak(self, text: str) -> None:
        """Say text and return when playback ends.

        Listening is stopped first and any utterance still playing is cancelled.
        Raises SynthesisError for failures other than an interruption.
        """
        if not self.active:
            return
        await self._wait_until_not_listening()
        if not self.active:
            return
        self.cancel_speech()

        self._utterance_seq += 1
        utterance_id = self._utterance_seq
        future = asyncio.get_running_loop().create_future()
        self._pending_speech[utterance_id] = future
        self._current_utterance = utterance_id
        self.speaking = True
        self.backend.synthesize(utterance_id, text)
        await future

    def cancel_speech(self) -> None:
        """Cancel the utterance in flight. Its interruption is not an error."""
        if self._current_utterance is None:
            return
        utterance_id = self._current_utterance
        self.backend.cancel_synthesis()
        self._finish_utterance(utterance_id)

    def on_synthesis_start(self, utterance_id: int) -> None:
        if utterance_id == self._current_utterance:
            self.emitter.emit(EventKind.SPEECH_START)

    def on_synthesis_end(self, utterance_id: int) -> None:
        self._finish_utterance(utterance_id)

    def on_synthesis_error(self, utterance_id: int, code: str) -> None:
        if code in INTERRUPTED_ERRORS:
            logger.debug(f"Utterance {utterance_id} interrupted")
            self._finish_utterance(utterance_id)
            return
        logger.error(f"Speech synthesis error: {code}")
        self._finish_utterance(utterance_id, SynthesisError(code))

    def _finish_utterance(self, utterance_id: int, error: Optional[Exception] = None) -> None:
        future = self._pending_speech.pop(utterance_id, None)
        if utterance_id == self._current_utterance:
            self._current_utterance = None
            self.speaking = False
            self.emitter.emit(EventKind.SPEECH_END)
        if future is not None and not future.done():
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(None)
