"""Chat API schemas."""
from typing import Annotated, Any, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel

from mockinterview.models.conversation import ConversationMessage, TurnContext


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class LegacyChatRequest(BaseModel):
    """Caller supplies the whole message list, system prompt first."""
    messages: List[ChatMessage] = Field(..., min_length=1)
    questions: List[str] = Field(default_factory=list)


class SessionChatRequest(BaseModel):
    """One user turn of a voice session plus the history before it."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str = Field(..., min_length=1)
    conversation_history: List[ConversationMessage] = Field(default_factory=list)
    type: Literal["generate", "interview"]
    questions: List[str] = Field(default_factory=list)
    current_question_index: int = Field(default=0, ge=0)
    user_name: str = "there"

    def history(self) -> List[ConversationMessage]:
        return [*self.conversation_history, ConversationMessage(role="user", content=self.message)]

    def context(self) -> TurnContext:
        return TurnContext(
            mode=self.type,
            questions=self.questions,
            current_question_index=self.current_question_index,
            user_name=self.user_name
        )


def _chat_request_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "session" if "message" in value else "legacy"
    return "session" if isinstance(value, SessionChatRequest) else "legacy"


ChatRequest = Annotated[
    Union[
        Annotated[SessionChatRequest, Tag("session")],
        Annotated[LegacyChatRequest, Tag("legacy")],
    ],
    Discriminator(_chat_request_kind),
]


class ChatResponse(BaseModel):
    response: str
