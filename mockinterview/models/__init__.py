"""Persisted entities and conversation value types."""
from mockinterview.models.common import PyObjectId, utc_now
from mockinterview.models.conversation import (
    ConversationConfig,
    ConversationMessage,
    TurnContext,
)
from mockinterview.models.feedback import CATEGORY_NAMES, CategoryScore, FeedbackReport
from mockinterview.models.interview import InterviewDefinition, InterviewDetails

__all__ = [
    "PyObjectId",
    "utc_now",
    "ConversationConfig",
    "ConversationMessage",
    "TurnContext",
    "CATEGORY_NAMES",
    "CategoryScore",
    "FeedbackReport",
    "InterviewDefinition",
    "InterviewDetails",
]
