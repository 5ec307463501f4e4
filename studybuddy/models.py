from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SubjectCategory(str, Enum):
    MATHEMATICS = "mathematics"
    NATURAL_SCIENCES = "natural-sciences"
    LITERATURE = "literature"
    HISTORY = "history"
    COMPUTER_SCIENCE = "computer-science"
    LANGUAGES = "languages"
    BUSINESS = "business"
    ARTS = "arts"
    HEALTH_MEDICINE = "health-medicine"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    SubjectCategory.MATHEMATICS: "Mathematics",
    SubjectCategory.NATURAL_SCIENCES: "Natural Sciences",
    SubjectCategory.LITERATURE: "Literature",
    SubjectCategory.HISTORY: "History",
    SubjectCategory.COMPUTER_SCIENCE: "Computer Science",
    SubjectCategory.LANGUAGES: "Languages",
    SubjectCategory.BUSINESS: "Business",
    SubjectCategory.ARTS: "Arts",
    SubjectCategory.HEALTH_MEDICINE: "Health & Medicine",
    SubjectCategory.OTHER: "Other",
}


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT_BASED = "text_based"


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_text: str
    answer_text: str
    type: QuestionType = QuestionType.MULTIPLE_CHOICE
    options: Optional[List[str]] = None
    correct_index: Optional[int] = None
    explanation: str = ""

    @property
    def is_multiple_choice(self) -> bool:
        return self.type == QuestionType.MULTIPLE_CHOICE

    def as_text_based(self) -> "Question":
        """Open-response copy: the correct option becomes the model answer."""
        answer = self.answer_text
        if self.options and self.correct_index is not None and 0 <= self.correct_index < len(self.options):
            answer = self.options[self.correct_index]
        return self.model_copy(
            update={
                "type": QuestionType.TEXT_BASED,
                "options": None,
                "correct_index": None,
                "answer_text": answer,
            }
        )


_DIGITS_RE = re.compile(r"\d+")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Pattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_text: str
    options: Optional[List[str]] = None
    type: QuestionType = QuestionType.MULTIPLE_CHOICE
    created_at: datetime = Field(default_factory=utc_now)
    question_length: int = 0
    has_numbers: bool = False

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @classmethod
    def from_question(cls, question: Question, created_at: Optional[datetime] = None) -> "Pattern":
        return cls(
            question_text=question.question_text,
            options=list(question.options) if question.options else None,
            type=question.type,
            created_at=created_at or utc_now(),
            question_length=len(question.question_text),
            has_numbers=bool(_DIGITS_RE.search(question.question_text)),
        )


class GenerationRequest(BaseModel):
    content: str
    requested_count: int
    subject: SubjectCategory = SubjectCategory.OTHER
    topic_name: str = ""


class GenerationResult(BaseModel):
    questions: List[Question] = Field(default_factory=list)
    requested_count: int
    attempts_used: int = 0
    met_count: bool = False
    strategies_used: List[str] = Field(default_factory=list)
    rejected_count: int = 0
