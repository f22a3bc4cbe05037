"""
Pydantic schemas for the question lookup endpoint.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class QuestionOut(BaseModel):
    question: str
    correct_answer: str | None = None
    incorrect_answers: list[str] = Field(default_factory=list)
