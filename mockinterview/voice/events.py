"""Event emission for voice sessions."""
import logging
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Events a voice session emits, in the order listeners should expect them."""
    CONVERSATION_START = "conversation-start"
    CONVERSATION_END = "conversation-end"
    LISTENING_START = "listening-start"
    LISTENING_END = "listening-end"
    SPEECH_START = "speech-start"
    SPEECH_END = "speech-end"
    MESSAGE = "message"
    PROCESSING_START = "processing-start"
    PROCESSING_END = "processing-end"
    STATUS = "status"
    OUTCOME = "outcome"
    ERROR = "error"


Listener = Callable[..., None]


class EventEmitter:
    """Synchronous listener registry.

    Listeners run in registration order inside emit(). A failing listener is
    logged and the remaining listeners still run.
    """

    def __init__(self):
        self._listeners: Dict[EventKind, List[Listener]] = {}

    def on(self, kind: EventKind, listener: Listener) -> None:
        self._listeners.setdefault(EventKind(kind), []).append(listener)

    def off(self, kind: EventKind, listener: Listener) -> None:
        listeners = self._listeners.get(EventKind(kind), [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, kind: EventKind, *args: Any) -> None:
        logger.debug(f"Emitting {kind.value}")
        for listener in list(self._listeners.get(kind, [])):
            try:
                listener(*args)
            except Exception as e:
                logger.error(f"Error in listener for {kind.value}: {e}")

    def clear(self) -> None:
        self._listeners.clear()
