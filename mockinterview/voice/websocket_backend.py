"""Speech backend that drives the browser's speech APIs over a websocket."""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect

from mockinterview.config import settings
from mockinterview.voice.speech import Capabilities, SpeechBackend

logger = logging.getLogger(__name__)


class WebSocketSpeechBackend(SpeechBackend):
    """Sends speech commands to the browser and routes its speech events back.

    Everything sent to the browser (commands and session events alike) goes
    through one outbox, so the browser sees it in the order it was produced.
    """

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._sender: Optional[asyncio.Task] = None
        self._probe: Optional[asyncio.Future] = None

    def start(self) -> None:
        if self._sender is None:
            self._sender = asyncio.create_task(self._send_loop())

    async def close(self) -> None:
        if self._sender is not None:
            self._sender.cancel()
            try:
                await self._sender
            except asyncio.CancelledError:
                pass
            self._sender = None
        if self._probe is not None and not self._probe.done():
            self._probe.cancel()

    async def _send_loop(self) -> None:
        while True:
            message = await self._outbox.get()
            try:
                await self.websocket.send_text(json.dumps(message, default=str))
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.info(f"Speech bridge closed while sending: {e}")
                return

    def send(self, message: Dict[str, Any]) -> None:
        self._outbox.put_nowait(message)

    async def probe(self) -> Capabilities:
        self._probe = asyncio.get_running_loop().create_future()
        self.send({"type": "probe"})
        try:
            return await asyncio.wait_for(self._probe, settings.probe_timeout)
        except asyncio.TimeoutError:
            logger.warning("Browser did not report speech capabilities in time")
            return Capabilities(recognition=False, synthesis=False, microphone=False)
        finally:
            self._probe = None

    def start_recognition(self) -> None:
        self.send({"type": "start-recognition"})

    def stop_recognition(self) -> None:
        self.send({"type": "stop-recognition"})

    def synthesize(self, utterance_id: int, text: str) -> None:
        self.send({"type": "speak", "utteranceId": utterance_id, "text": text})

    def cancel_synthesis(self) -> None:
        self.send({"type": "cancel-speech"})

    def dispatch(self, event: Dict[str, Any]) -> bool:
        """Route one browser speech event. Returns False for anything else."""
        kind = event.get("type")

        if kind == "capabilities":
            if self._probe is not None and not self._probe.done():
                self._probe.set_result(Capabilities(
                    recognition=bool(event.get("recognition")),
                    synthesis=bool(event.get("synthesis")),
                    microphone=bool(event.get("microphone"))
                ))
            return True

        adapter = self.adapter
        if adapter is None:
            return False

        try:
            utterance_id = int(event.get("utteranceId") or 0)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring {kind} event with invalid utterance id: {event.get('utteranceId')!r}")
            return True

        if kind == "recognition-start":
            adapter.on_recognition_start()
        elif kind == "recognition-result":
            adapter.on_recognition_result(str(event.get("transcript") or ""), bool(event.get("isFinal", True)))
        elif kind == "recognition-error":
            adapter.on_recognition_error(str(event.get("error") or "unknown"))
        elif kind == "recognition-end":
            adapter.on_recognition_end()
        elif kind == "speech-start":
            adapter.on_synthesis_start(utterance_id)
        elif kind == "speech-end":
            adapter.on_synthesis_end(utterance_id)
        elif kind == "speech-error":
            adapter.on_synthesis_error(utterance_id, str(event.get("error") or "unknown"))
        else:
            return False
        return True
