"""Interview and feedback API schemas."""
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from mockinterview.models.conversation import ConversationMessage
from mockinterview.models.interview import InterviewDetails


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateInterviewRequest(CamelModel):
    """Either explicit details (role given) or a setup conversation to derive them from."""

    user_id: str = Field(..., min_length=1)
    role: Optional[str] = None
    level: Optional[str] = None
    type: Optional[str] = None
    techstack: Optional[Union[List[str], str]] = None
    amount: Optional[int] = None
    conversation: Optional[Union[str, List[ConversationMessage]]] = None

    @model_validator(mode="after")
    def require_details_or_conversation(self):
        if not self.is_direct and not self.conversation:
            raise ValueError("Missing conversation or role")
        return self

    @property
    def is_direct(self) -> bool:
        return bool(self.role and self.role.strip())

    def details(self) -> InterviewDetails:
        return InterviewDetails(
            role=self.role,
            level=self.level,
            type=self.type,
            techstack=self.techstack,
            amount=self.amount
        )


class GenerateInterviewResponse(CamelModel):
    success: bool = True
    interview_id: str
    questions: List[str]
    details: InterviewDetails


class CompleteInterviewRequest(CamelModel):
    interview_id: str = Field(..., min_length=1)


class SuccessResponse(CamelModel):
    success: bool = True


class FeedbackRequest(CamelModel):
    interview_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    transcript: List[ConversationMessage] = Field(default_factory=list)
    feedback_id: Optional[str] = None


class FeedbackResponse(CamelModel):
    success: bool
    feedback_id: Optional[str] = None
    finalized: bool = False
