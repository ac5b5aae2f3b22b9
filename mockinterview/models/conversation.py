"""Conversation value types shared by the voice engine and the chat API."""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Mode = Literal["generate", "interview"]


class ConversationMessage(BaseModel):
    """One transcript entry. Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str


class ConversationConfig(BaseModel):
    """Settings for one voice session, fixed at start."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True
    )

    mode: Mode = Field(..., alias="type")
    questions: List[str] = Field(default_factory=list)
    user_name: str = "there"
    user_id: str
    interview_id: Optional[str] = None
    feedback_id: Optional[str] = None


class TurnContext(BaseModel):
    """Mode metadata sent alongside the history when asking for the next utterance."""

    model_config = ConfigDict(frozen=True)

    mode: Mode
    questions: List[str] = Field(default_factory=list)
    current_question_index: int = 0
    user_name: str = "there"
