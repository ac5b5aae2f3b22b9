"""Interview definition models."""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from mockinterview.config import settings
from mockinterview.models.common import PyObjectId, utc_now
from mockinterview.utils.keywords import normalize_level, normalize_type

Level = Literal["entry-level", "mid-level", "senior-level"]
InterviewType = Literal["technical", "behavioral", "mixed"]


def _split_techstack(v):
    if v is None:
        return []
    if isinstance(v, str):
        v = v.split(",")
    return [str(item).strip() for item in v if str(item).strip()]


def _clamp_amount(v):
    try:
        amount = int(v)
    except (TypeError, ValueError):
        return settings.default_question_amount
    return max(1, min(settings.max_question_amount, amount))


class InterviewDetails(BaseModel):
    """What an interview is about, before questions exist."""

    model_config = ConfigDict(populate_by_name=True)

    role: str = Field(..., min_length=1)
    level: Level = "mid-level"
    type: InterviewType = "mixed"
    techstack: List[str] = Field(default_factory=list)
    amount: int = Field(default_factory=lambda: settings.default_question_amount)

    @field_validator("role", mode="before")
    @classmethod
    def strip_role(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level_value(cls, v):
        return normalize_level(v)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type_value(cls, v):
        return normalize_type(v)

    @field_validator("techstack", mode="before")
    @classmethod
    def split_techstack(cls, v):
        return _split_techstack(v)

    @field_validator("amount", mode="before")
    @classmethod
    def clamp_amount(cls, v):
        return _clamp_amount(v)


class InterviewDefinition(BaseModel):
    """A persisted mock interview: details plus the question list."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True
    )

    id: Optional[PyObjectId] = Field(
        default=None,
        validation_alias=AliasChoices("_id", "id"),
        serialization_alias="id"
    )
    role: str
    level: Level
    type: InterviewType
    techstack: List[str] = Field(default_factory=list)
    questions: List[str] = Field(default_factory=list)
    user_id: str
    amount: int
    finalized: bool = False
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level_value(cls, v):
        return normalize_level(v)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type_value(cls, v):
        return normalize_type(v)

    @property
    def details(self) -> InterviewDetails:
        return InterviewDetails(
            role=self.role,
            level=self.level,
            type=self.type,
            techstack=self.techstack,
            amount=self.amount
        )

    def to_document(self) -> dict:
        """Mongo document body (camelCase keys, no id)."""
        return self.model_dump(by_alias=True, exclude={"id"})
