"""
Question deduplication and the insert path.

Question text is the dedup key. An incoming question that matches an existing
row field-for-field is skipped; one that differs is reported as diverged and
left alone. Whichever copy arrived first wins.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Union

from . import repository
from .errors import AnswerResolutionError, PersistenceConflictError
from .reference import ReferenceDataSync

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuestionCandidate:
    question: str
    difficulty: str
    category: str
    type: str
    correct_answer: str
    incorrect_answers: tuple[str, ...]


@dataclass(frozen=True)
class Stored:
    question_id: int


@dataclass(frozen=True)
class Skipped:
    reason: str = "duplicate"


@dataclass(frozen=True)
class Diverged:
    report: str


Resolution = Union[Stored, Skipped, Diverged]


def diff_question(candidate: QuestionCandidate, existing: dict[str, Any]) -> list[str]:
    """
    Human-readable differences between an incoming and a stored question.

    Incorrect answers are compared as sorted sets: order never matters, and a
    repeated text is stored as a single link.
    """
    lines: list[str] = []
    for field_name in ("difficulty", "category", "type"):
        received = getattr(candidate, field_name)
        if existing.get(field_name) != received:
            lines.append(f"received {field_name}: {received}, existing: {existing.get(field_name)}")

    if existing.get("correct_answer") != candidate.correct_answer:
        lines.append(
            f"received correct_answer: '{candidate.correct_answer}', existing: '{existing.get('correct_answer')}'"
        )

    existing_incorrect = sorted(set(existing.get("incorrect_answers") or []))
    received_incorrect = sorted(set(candidate.incorrect_answers))
    if len(existing_incorrect) != len(received_incorrect):
        lines.append(
            f"received incorrect_answers.length: {len(received_incorrect)}, existing: {len(existing_incorrect)}"
        )
    for received, stored in zip(received_incorrect, existing_incorrect):
        if received != stored:
            lines.append(f"incorrect_answer received: {received}, existing: {stored}")
    return lines


class DeduplicationResolver:
    def __init__(self, references: ReferenceDataSync, *, repo: ModuleType | Any = repository) -> None:
        self._references = references
        self._repo = repo

    async def resolve(self, candidate: QuestionCandidate) -> Resolution:
        existing = await self._repo.find_question_by_text(candidate.question)
        if existing is not None:
            return self._compare(candidate, existing)

        try:
            return await self._insert(candidate)
        except PersistenceConflictError:
            # Someone else stored the same text first; judge against their row.
            existing = await self._repo.find_question_by_text(candidate.question)
            if existing is None:
                raise
            return self._compare(candidate, existing)

    def _compare(self, candidate: QuestionCandidate, existing: dict[str, Any]) -> Resolution:
        lines = diff_question(candidate, existing)
        if not lines:
            return Skipped()

        report = "\n".join([f"Question already exists: {candidate.question}", *lines])
        logger.warning("question_diverged question_id=%s\n%s", existing.get("id"), report)
        return Diverged(report=report)

    async def _insert(self, candidate: QuestionCandidate) -> Stored:
        # Unknown reference names fail here, before any answer row is written.
        cache = self._references.cache
        difficulty_id = cache.difficulty_id(candidate.difficulty)
        category_id = int(cache.category(candidate.category)["id"])
        type_id = cache.type_id(candidate.type)

        answers = await asyncio.gather(
            self.resolve_answer(candidate.correct_answer),
            *(self.resolve_answer(text) for text in dict.fromkeys(candidate.incorrect_answers)),
            return_exceptions=True,
        )
        for answer in answers:
            if isinstance(answer, BaseException):
                raise answer
        correct, incorrect = answers[0], answers[1:]

        row = await self._repo.create_question(
            question=candidate.question,
            difficulty_id=difficulty_id,
            category_id=category_id,
            type_id=type_id,
            correct_answer_id=int(correct["id"]),
            incorrect_answer_ids=[int(answer["id"]) for answer in incorrect],
        )
        return Stored(question_id=int(row["id"]))

    async def resolve_answer(self, text: str) -> dict[str, Any]:
        """
        Find-or-create one answer row by exact text.
        """
        answer = await self._repo.find_answer(text)
        if answer is not None:
            return answer

        try:
            return await self._repo.create_answer(text)
        except PersistenceConflictError:
            answer = await self._repo.find_answer(text)
            if answer is None:
                raise AnswerResolutionError(f"Failed to create or find answer: {text}") from None
            return answer
