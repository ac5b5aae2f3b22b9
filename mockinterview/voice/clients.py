"""Clients the voice engine uses to get replies and persist session results."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from mockinterview.config import settings
from mockinterview.exceptions import MockInterviewError, PersistenceError
from mockinterview.models.conversation import ConversationMessage, TurnContext
from mockinterview.services.feedback_service import FeedbackService
from mockinterview.services.interview_service import InterviewGenerationService
from mockinterview.services.responder import APOLOGY, ConversationResponder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssistantReply:
    text: str
    degraded: bool = False


def _messages(history: Sequence[ConversationMessage]) -> List[Dict[str, str]]:
    return [{"role": m.role, "content": m.content} for m in history]


class InterviewClient(ABC):
    """What the engine needs from the server side."""

    @abstractmethod
    async def next_utterance(self, history: Sequence[ConversationMessage], context: TurnContext) -> AssistantReply:
        """Never raises. Failures come back as a degraded apology."""

    @abstractmethod
    async def generate_interview(self, user_id: str, transcript: Sequence[ConversationMessage]) -> str:
        """Create an interview from a setup conversation and return its id."""

    @abstractmethod
    async def submit_feedback(
        self,
        interview_id: str,
        user_id: str,
        transcript: Sequence[ConversationMessage],
        feedback_id: Optional[str] = None
    ) -> Optional[str]:
        """Store feedback for an interview and return the feedback id."""

    @abstractmethod
    async def complete_interview(self, interview_id: str) -> None:
        """Finalize an interview without feedback."""


class HttpInterviewClient(InterviewClient):
    """Talks to the HTTP API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url or settings.api_base_url
        self.timeout = timeout or settings.request_timeout
        self._transport = transport

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with self.client() as client:
            response = await client.post(path, json=payload)
            response.raise_for_status()
            return response.json()

    async def next_utterance(self, history: Sequence[ConversationMessage], context: TurnContext) -> AssistantReply:
        history = list(history)
        message = history[-1].content if history and history[-1].role == "user" else ""
        payload = {
            "message": message,
            "conversationHistory": _messages(history[:-1] if message else history),
            "type": context.mode,
            "questions": context.questions,
            "currentQuestionIndex": context.current_question_index,
            "userName": context.user_name,
        }
        try:
            data = await self._post("/api/chat", payload)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Chat request failed, apologizing instead: {e}")
            return AssistantReply(APOLOGY, degraded=True)

        text = data.get("response") if isinstance(data, dict) else None
        if not text:
            logger.warning("Chat response had no text, apologizing instead")
            return AssistantReply(APOLOGY, degraded=True)
        return AssistantReply(text)

    async def generate_interview(self, user_id: str, transcript: Sequence[ConversationMessage]) -> str:
        try:
            data = await self._post(
                "/api/generate-interview",
                {"userId": user_id, "conversation": _messages(transcript)}
            )
        except (httpx.HTTPError, ValueError) as e:
            raise PersistenceError(f"Interview generation request failed: {e}") from e
        if not data.get("success") or not data.get("interviewId"):
            raise PersistenceError(data.get("error") or "Interview generation failed")
        return data["interviewId"]

    async def submit_feedback(
        self,
        interview_id: str,
        user_id: str,
        transcript: Sequence[ConversationMessage],
        feedback_id: Optional[str] = None
    ) -> Optional[str]:
        payload = {
            "interviewId": interview_id,
            "userId": user_id,
            "transcript": _messages(transcript),
            "feedbackId": feedback_id,
        }
        try:
            data = await self._post("/api/feedback", payload)
        except (httpx.HTTPError, ValueError) as e:
            raise PersistenceError(f"Feedback request failed: {e}") from e
        if not data.get("success"):
            raise PersistenceError(data.get("error") or "Feedback was not saved")
        return data.get("feedbackId")

    async def complete_interview(self, interview_id: str) -> None:
        try:
            await self._post("/api/complete-interview", {"interviewId": interview_id})
        except (httpx.HTTPError, ValueError) as e:
            raise PersistenceError(f"Complete interview request failed: {e}") from e


class LocalInterviewClient(InterviewClient):
    """Calls the services in-process. Used by the voice websocket."""

    def __init__(
        self,
        responder: ConversationResponder,
        interviews: InterviewGenerationService,
        feedback: FeedbackService
    ):
        self.responder = responder
        self.interviews = interviews
        self.feedback = feedback

    async def next_utterance(self, history: Sequence[ConversationMessage], context: TurnContext) -> AssistantReply:
        try:
            return AssistantReply(await self.responder.reply(history, context))
        except MockInterviewError as e:
            logger.warning(f"Reply generation failed, apologizing instead: {e}")
            return AssistantReply(APOLOGY, degraded=True)

    async def generate_interview(self, user_id: str, transcript: Sequence[ConversationMessage]) -> str:
        interview, _ = await self.interviews.create_from_transcript(user_id, list(transcript))
        return str(interview.id)

    async def submit_feedback(
        self,
        interview_id: str,
        user_id: str,
        transcript: Sequence[ConversationMessage],
        feedback_id: Optional[str] = None
    ) -> Optional[str]:
        result = await self.feedback.create_feedback(interview_id, user_id, list(transcript), feedback_id)
        if not result["success"]:
            raise PersistenceError(f"Feedback for interview {interview_id} was not saved")
        return result["feedbackId"]

    async def complete_interview(self, interview_id: str) -> None:
        await self.interviews.complete_interview(interview_id)
