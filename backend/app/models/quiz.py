"""
Quiz Data Models (Pydantic)

A quiz is only accepted whole: every question must have exactly three
non-empty options and a correct answer among them. Validation errors raised
here are treated as a failed generation attempt by the quiz stage.

The generation service answers in camelCase (``correctAnswer``), so the
models accept both the alias and the field name.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QuizOptions(BaseModel):
    """The three answer options of a question, keyed A, B and C."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    A: str = Field(..., min_length=1)
    B: str = Field(..., min_length=1)
    C: str = Field(..., min_length=1)


class QuizQuestion(BaseModel):
    """
    Single multiple-choice question.

    Attributes:
        id: Positive question number
        question: Question text
        options: Options A, B and C
        correct_answer: Key of the correct option
        explanation: Why the answer is correct
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    id: int = Field(..., ge=1)
    question: str = Field(..., min_length=1)
    options: QuizOptions
    correct_answer: Literal["A", "B", "C"] = Field(..., alias="correctAnswer")
    explanation: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _reject_non_integer_id(cls, value):
        # bool is an int subclass and "1" would be coerced in lax mode
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("id must be an integer")
        return value


class QuizResult(BaseModel):
    """
    Outcome of quiz generation.

    ``questions`` is empty and ``error`` is set when every attempt failed.
    """

    questions: list[QuizQuestion] = Field(default_factory=list)
    error: Optional[str] = None
