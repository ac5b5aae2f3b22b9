"""FastAPI dependency providers."""
from functools import lru_cache

from fastapi import Depends

from mockinterview.database import DocumentStore, get_store
from mockinterview.services.feedback_service import FeedbackService
from mockinterview.services.interview_service import InterviewGenerationService
from mockinterview.services.llm_client import TextGenerationClient
from mockinterview.services.responder import ConversationResponder
from mockinterview.voice.clients import LocalInterviewClient


@lru_cache
def get_text_generator() -> TextGenerationClient:
    """Shared text generation client."""
    return TextGenerationClient()


def get_responder(
    generator: TextGenerationClient = Depends(get_text_generator)
) -> ConversationResponder:
    return ConversationResponder(generator)


def get_interview_service(
    store: DocumentStore = Depends(get_store),
    generator: TextGenerationClient = Depends(get_text_generator)
) -> InterviewGenerationService:
    return InterviewGenerationService(store, generator)


def get_feedback_service(
    store: DocumentStore = Depends(get_store),
    generator: TextGenerationClient = Depends(get_text_generator)
) -> FeedbackService:
    return FeedbackService(store, generator)


def get_local_client(
    responder: ConversationResponder = Depends(get_responder),
    interviews: InterviewGenerationService = Depends(get_interview_service),
    feedback: FeedbackService = Depends(get_feedback_service)
) -> LocalInterviewClient:
    return LocalInterviewClient(responder, interviews, feedback)
