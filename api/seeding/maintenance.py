"""
Whitespace maintenance pass.

Older rows may carry leading/trailing whitespace from before fetched texts
were stripped. This pass rewrites them trimmed. When the trimmed text already
exists as another row, the untrimmed duplicate is deleted instead; questions
that pointed at a deleted answer need a reseed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Awaitable, Callable

from . import repository
from .errors import PersistenceConflictError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrimReport:
    kind: str
    trimmed: int = 0
    deleted: int = 0


async def _trim_rows(
    kind: str,
    rows: list[dict[str, Any]],
    text_key: str,
    update: Callable[[int, str], Awaitable[None]],
    delete: Callable[[int], Awaitable[None]],
) -> TrimReport:
    trimmed = 0
    deleted = 0
    for row in rows:
        raw = row[text_key]
        clean = raw.strip()
        if clean == raw:
            continue

        trimmed += 1
        try:
            await update(int(row["id"]), clean)
        except PersistenceConflictError as exc:
            logger.error(
                "trim_conflict kind=%s id=%s text=%r error=%s -- deleting row, you will need to re-run seed",
                kind,
                row["id"],
                raw,
                exc,
            )
            await delete(int(row["id"]))
            deleted += 1

    logger.info("trim_complete kind=%s trimmed=%d deleted=%d", kind, trimmed, deleted)
    return TrimReport(kind=kind, trimmed=trimmed, deleted=deleted)


async def trim_answers(*, repo: ModuleType | Any = repository) -> TrimReport:
    rows = await repo.list_answers()
    return await _trim_rows("answers", rows, "answer", repo.update_answer_text, repo.delete_answer)


async def trim_questions(*, repo: ModuleType | Any = repository) -> TrimReport:
    rows = await repo.list_question_texts()
    return await _trim_rows("questions", rows, "question", repo.update_question_text, repo.delete_question)


async def trim_all(*, repo: ModuleType | Any = repository) -> list[TrimReport]:
    return [
        await trim_answers(repo=repo),
        await trim_questions(repo=repo),
    ]
