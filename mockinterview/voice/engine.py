"""Voice conversation engine: lifecycle, turn-taking and session finalization."""
import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional, Set

from mockinterview.config import settings
from mockinterview.exceptions import CapabilityError, MockInterviewError, SynthesisError
from mockinterview.models.conversation import ConversationConfig, ConversationMessage, TurnContext
from mockinterview.services.responder import APOLOGY, greeting
from mockinterview.voice.clients import AssistantReply, InterviewClient
from mockinterview.voice.events import EventEmitter, EventKind
from mockinterview.voice.speech import SpeechAdapter, SpeechBackend

logger = logging.getLogger(__name__)


class CallStatus(str, Enum):
    INACTIVE = "INACTIVE"
    CONNECTING = "CONNECTING"
    ACTIVE = "ACTIVE"
    FINISHED = "FINISHED"


class TurnPhase(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    SPEAKING = "speaking"
    PROCESSING = "processing"


class SessionOutcome(str, Enum):
    GENERATED = "generated"
    FEEDBACK = "feedback"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class ConversationEngine:
    """Runs one voice session at a time as strict alternating turns.

    Every session gets a generation number. Anything that resumes after an
    await (replies, timers, probes) checks it and drops out when the session
    it belonged to has been stopped or replaced.
    """

    def __init__(
        self,
        backend: SpeechBackend,
        client: InterviewClient,
        emitter: Optional[EventEmitter] = None
    ):
        self.emitter = emitter or EventEmitter()
        self.adapter = SpeechAdapter(backend, self.emitter)
        self.client = client

        self.status = CallStatus.INACTIVE
        self.config: Optional[ConversationConfig] = None
        self.messages: List[ConversationMessage] = []
        self.question_index = 0
        self.processing = False
        self.closing = False
        self._ending = False

        self._generation = 0
        self._heartbeat: Optional[asyncio.Task] = None
        self._turn: Optional[asyncio.Task] = None
        self._finalizer: Optional[asyncio.Task] = None
        self._timers: Set[asyncio.TimerHandle] = set()
        self._closing_timer: Optional[asyncio.TimerHandle] = None

        self.emitter.on(EventKind.LISTENING_END, self._on_listening_end)

    @property
    def phase(self) -> TurnPhase:
        if self.adapter.is_speaking:
            return TurnPhase.SPEAKING
        if self.processing:
            return TurnPhase.PROCESSING
        if self.adapter.is_listening:
            return TurnPhase.LISTENING
        return TurnPhase.IDLE

    @property
    def transcript(self) -> List[ConversationMessage]:
        return list(self.messages)

    # Lifecycle

    async def start_conversation(self, config: ConversationConfig) -> None:
        """Start a session.

        Raises CapabilityError when speech support is missing; the engine is
        left INACTIVE.
        """
        # 1. Let the previous session's results land first
        if self._finalizer is not None and not self._finalizer.done():
            logger.info("Waiting for the previous session to finish saving")
            await asyncio.wait([self._finalizer])

        # 2. Tear down a live session without saving it
        if self.status in (CallStatus.CONNECTING, CallStatus.ACTIVE):
            logger.info("Restarting: tearing down the live session")
            self._teardown()

        self._generation += 1
        generation = self._generation
        self.config = config
        self.messages = []
        self.question_index = 0
        self.processing = False
        self.closing = False
        self._ending = False
        self._set_status(CallStatus.CONNECTING)

        # 3. Capability probe
        try:
            await self.adapter.require_capabilities()
        except CapabilityError as e:
            if generation == self._generation:
                logger.warning(f"Cannot start session: {e}")
                self._set_status(CallStatus.INACTIVE)
                self.emitter.emit(EventKind.ERROR, e)
            raise
        if generation != self._generation:
            return

        # 4. Go live and greet
        self.adapter.activate(
            should_listen=self._should_listen,
            on_utterance=self._on_utterance,
            on_fatal=self._on_fatal
        )
        self._set_status(CallStatus.ACTIVE)
        self._heartbeat = asyncio.create_task(self._heartbeat_loop(generation))
        self.emitter.emit(EventKind.CONVERSATION_START)
        logger.info(f"Started {config.mode} session for user {config.user_id}")

        if config.mode == "interview":
            self.question_index = 1
            self.closing = not config.questions
        text = greeting(config)
        self._append("assistant", text)
        await self._say(text, generation)

    def stop_conversation(self) -> None:
        """End the session from any state. Results are saved in the background."""
        was_live = self.status in (CallStatus.CONNECTING, CallStatus.ACTIVE)
        self._generation += 1
        self._teardown()
        if not was_live:
            return

        self._set_status(CallStatus.FINISHED)
        self.emitter.emit(EventKind.CONVERSATION_END)
        logger.info(f"Session finished with {len(self.messages)} messages")
        if self.config is not None:
            self._finalizer = asyncio.create_task(
                self._finalize(self.config, list(self.messages), self._generation)
            )

    async def wait_finalized(self) -> Optional[SessionOutcome]:
        """Outcome of the most recent finalization, once it has completed."""
        if self._finalizer is None:
            return None
        return await self._finalizer

    def dispose(self) -> None:
        self.stop_conversation()
        if self._turn is not None and not self._turn.done():
            self._turn.cancel()
        self.emitter.clear()

    def force_restart_listening(self) -> None:
        """Manual recovery when the microphone seems stuck."""
        if self.status != CallStatus.ACTIVE:
            return
        self.adapter.stop_listening()
        self._schedule(settings.listen_restart_delay, self.adapter.start_listening)

    def heartbeat(self) -> bool:
        """One liveness check. Restarts listening if the session has stalled."""
        if self.status != CallStatus.ACTIVE or self.phase != TurnPhase.IDLE:
            return False
        logger.info("Liveness check: restarting listening")
        return self.adapter.start_listening()

    # Internals

    def _set_status(self, status: CallStatus) -> None:
        self.status = status
        self.emitter.emit(EventKind.STATUS, status)

    def _append(self, role: str, content: str) -> ConversationMessage:
        message = ConversationMessage(role=role, content=content)
        self.messages.append(message)
        self.emitter.emit(EventKind.MESSAGE, message)
        return message

    def _teardown(self) -> None:
        self.adapter.deactivate()
        if self._heartbeat is not None:
            self._heartbeat.cancel()
            self._heartbeat = None
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()
        if self._closing_timer is not None:
            self._closing_timer.cancel()
            self._closing_timer = None
        self.processing = False

    def _schedule(self, delay: float, callback: Callable[[], object]) -> None:
        generation = self._generation
        handle: Optional[asyncio.TimerHandle] = None

        def run() -> None:
            self._timers.discard(handle)
            if generation == self._generation and self.status == CallStatus.ACTIVE:
                callback()

        handle = asyncio.get_running_loop().call_later(delay, run)
        self._timers.add(handle)

    def _should_listen(self) -> bool:
        return self.status == CallStatus.ACTIVE and not self.processing

    async def _heartbeat_loop(self, generation: int) -> None:
        while True:
            await asyncio.sleep(settings.heartbeat_interval)
            if generation != self._generation or self.status != CallStatus.ACTIVE:
                return
            self.heartbeat()

    def _on_listening_end(self) -> None:
        if self.status == CallStatus.ACTIVE and self.phase == TurnPhase.IDLE:
            self._schedule(settings.listen_restart_delay, self.adapter.start_listening)

    def _on_fatal(self, error: Exception) -> None:
        logger.error(f"Session ended by fatal speech error: {error}")
        self._generation += 1
        self._teardown()
        self._set_status(CallStatus.INACTIVE)

    async def _say(self, text: str, generation: int) -> None:
        try:
            await self.adapter.speak(text)
        except SynthesisError as e:
            logger.warning(f"Could not speak reply, continuing: {e}")
        if generation != self._generation or self.status != CallStatus.ACTIVE:
            return

        if self._ending:
            self.stop_conversation()
            return
        if self.closing and self._closing_timer is None:
            self._closing_timer = asyncio.get_running_loop().call_later(
                settings.closing_timeout, self._closing_expired, generation
            )
        self._schedule(settings.post_speech_delay, self.adapter.start_listening)

    def _closing_expired(self, generation: int) -> None:
        self._closing_timer = None
        if generation == self._generation and self.status == CallStatus.ACTIVE and not self.processing:
            logger.info("No final questions from the candidate, ending the session")
            self.stop_conversation()

    def _on_utterance(self, text: str) -> None:
        if self.status != CallStatus.ACTIVE or self.processing:
            logger.debug("Ignoring utterance outside a listening turn")
            return
        self.adapter.stop_listening()
        self._append("user", text)
        self.processing = True
        self._turn = asyncio.create_task(self._run_turn(self._generation))

    async def _run_turn(self, generation: int) -> None:
        if self._closing_timer is not None:
            self._closing_timer.cancel()
            self._closing_timer = None
        config = self.config
        self.emitter.emit(EventKind.PROCESSING_START)

        context = TurnContext(
            mode=config.mode,
            questions=config.questions,
            current_question_index=self.question_index,
            user_name=config.user_name
        )
        try:
            reply = await self.client.next_utterance(list(self.messages), context)
        except Exception as e:
            logger.exception(f"Reply client failed: {e}")
            reply = AssistantReply(APOLOGY, degraded=True)

        if generation != self._generation:
            logger.info("Discarding a reply that arrived after the session ended")
            return

        self.processing = False
        self.emitter.emit(EventKind.PROCESSING_END)

        if config.mode == "interview" and not reply.degraded:
            total = len(config.questions)
            if self.question_index > total:
                self._ending = True
            elif self.question_index == total:
                self.closing = True
            self.question_index += 1

        self._append("assistant", reply.text)
        await self._say(reply.text, generation)

    async def _finalize(
        self,
        config: ConversationConfig,
        transcript: List[ConversationMessage],
        generation: int
    ) -> SessionOutcome:
        try:
            if config.mode == "generate":
                outcome = await self._finalize_generate(config, transcript, generation)
            else:
                outcome = await self._finalize_interview(config, transcript)
        except Exception as e:
            logger.error(f"Failed to save session results: {e}")
            self.emitter.emit(EventKind.ERROR, e)
            outcome = SessionOutcome.FAILED
        self.emitter.emit(EventKind.OUTCOME, outcome)
        return outcome

    async def _finalize_generate(
        self,
        config: ConversationConfig,
        transcript: List[ConversationMessage],
        generation: int
    ) -> SessionOutcome:
        meaningful = [m for m in transcript if len(m.content.strip()) >= settings.min_utterance_length]
        if len(meaningful) < 2 or not any(m.role == "user" for m in meaningful):
            logger.info("Setup conversation too short, not generating an interview")
            if generation == self._generation and self.status == CallStatus.FINISHED:
                self._set_status(CallStatus.INACTIVE)
            return SessionOutcome.SKIPPED
        interview_id = await self.client.generate_interview(config.user_id, meaningful)
        logger.info(f"Generated interview {interview_id}")
        return SessionOutcome.GENERATED

    async def _finalize_interview(
        self,
        config: ConversationConfig,
        transcript: List[ConversationMessage]
    ) -> SessionOutcome:
        if not config.interview_id:
            raise MockInterviewError("Interview session has no interview id to save against")
        if not any(m.role == "user" for m in transcript):
            await self.client.complete_interview(config.interview_id)
            return SessionOutcome.COMPLETED
        feedback_id = await self.client.submit_feedback(
            config.interview_id, config.user_id, transcript, config.feedback_id
        )
        logger.info(f"Saved feedback {feedback_id} for interview {config.interview_id}")
        return SessionOutcome.FEEDBACK
