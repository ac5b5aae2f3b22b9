"""Feedback report models."""
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from mockinterview.models.common import PyObjectId, utc_now
from mockinterview.utils.text import clamp_score

CATEGORY_NAMES = (
    "Communication Skills",
    "Technical Knowledge",
    "Problem Solving",
    "Cultural Fit",
    "Confidence and Clarity",
)


class CategoryScore(BaseModel):
    name: str
    score: int = Field(..., ge=0, le=100)
    comment: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def clamp(cls, v):
        return clamp_score(v)


class FeedbackReport(BaseModel):
    """Scored evaluation of one interview attempt."""

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
    interview_id: str
    user_id: str
    total_score: int = Field(..., ge=0, le=100)
    category_scores: List[CategoryScore]
    strengths: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)
    final_assessment: str = ""
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("total_score", mode="before")
    @classmethod
    def clamp_total(cls, v):
        return clamp_score(v)

    @field_validator("category_scores")
    @classmethod
    def fixed_categories(cls, v: List[CategoryScore]) -> List[CategoryScore]:
        if [c.name for c in v] != list(CATEGORY_NAMES):
            raise ValueError(f"Category scores must be exactly {', '.join(CATEGORY_NAMES)}")
        return v

    def to_document(self) -> dict:
        """Mongo document body (camelCase keys, no id)."""
        return self.model_dump(by_alias=True, exclude={"id"})
