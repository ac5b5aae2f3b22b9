"""Voice session websocket.

The browser acts as a speech bridge: it runs recognition and synthesis on
command and reports their events back. The conversation engine runs here,
one per connection, created on the first start message.
"""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from mockinterview.dependencies import get_local_client
from mockinterview.exceptions import CapabilityError
from mockinterview.models.conversation import ConversationConfig
from mockinterview.voice.clients import InterviewClient
from mockinterview.voice.engine import ConversationEngine
from mockinterview.voice.events import EventKind
from mockinterview.voice.websocket_backend import WebSocketSpeechBackend

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/voice", tags=["Voice"])


def _forward_events(engine: ConversationEngine, backend: WebSocketSpeechBackend) -> None:
    """Mirror engine events to the browser through the ordered outbox."""

    def forward(kind: EventKind):
        def listener(*args: Any) -> None:
            payload: Dict[str, Any] = {"type": "event", "event": kind.value}
            if kind == EventKind.MESSAGE:
                payload["message"] = args[0].model_dump()
            elif kind in (EventKind.STATUS, EventKind.OUTCOME):
                payload["value"] = args[0].value
            elif kind == EventKind.ERROR:
                error = args[0]
                payload["error"] = str(error)
                payload["errorType"] = type(error).__name__
                missing = getattr(error, "missing", None)
                if missing:
                    payload["missing"] = missing
            backend.send(payload)
        return listener

    for kind in EventKind:
        engine.emitter.on(kind, forward(kind))


async def _start(engine: ConversationEngine, config: ConversationConfig, backend: WebSocketSpeechBackend) -> None:
    try:
        await engine.start_conversation(config)
    except CapabilityError:
        # Already reported to the browser as an error event.
        pass
    except Exception as e:
        logger.exception(f"Voice session failed to start: {e}")
        backend.send({"type": "event", "event": "error", "error": str(e), "errorType": type(e).__name__})


@router.websocket("/ws")
async def voice_session(
    websocket: WebSocket,
    client: InterviewClient = Depends(get_local_client)
):
    await websocket.accept()
    logger.info(f"Voice session connected from {websocket.client}")

    backend = WebSocketSpeechBackend(websocket)
    backend.start()
    engine: Optional[ConversationEngine] = None
    tasks = set()

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                backend.send({"type": "event", "event": "error", "error": "Invalid JSON"})
                continue
            if not isinstance(message, dict):
                continue

            kind = message.get("type")
            if kind == "start":
                try:
                    config = ConversationConfig.model_validate(message.get("config") or {})
                except ValidationError as e:
                    backend.send({"type": "event", "event": "error", "error": f"Invalid session config: {e}"})
                    continue
                if engine is None:
                    engine = ConversationEngine(backend, client)
                    _forward_events(engine, backend)
                task = asyncio.create_task(_start(engine, config, backend))
                tasks.add(task)
                task.add_done_callback(tasks.discard)
            elif kind == "stop":
                if engine is not None:
                    engine.stop_conversation()
            elif kind == "tap-to-speak":
                if engine is not None:
                    engine.force_restart_listening()
            elif not backend.dispatch(message):
                logger.debug(f"Ignoring unknown voice message type: {kind}")

    except WebSocketDisconnect:
        logger.info("Voice session disconnected")
    finally:
        for task in tasks:
            task.cancel()
        if engine is not None:
            engine.dispose()
        await backend.close()
