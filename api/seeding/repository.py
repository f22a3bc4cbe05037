"""
Seeding persistence.
This module is where the trivia schema's write-side SQL lives.

Unique-constraint violations are re-raised as PersistenceConflictError and any
other server-side rejection as PersistenceError, so the pipeline can recover
from them without knowing about asyncpg.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

import asyncpg

from core import db

from .errors import PersistenceConflictError, PersistenceError


@contextmanager
def _db_errors(conflict: str) -> Iterator[None]:
    try:
        yield
    except asyncpg.UniqueViolationError as exc:
        raise PersistenceConflictError(conflict) from exc
    except asyncpg.PostgresError as exc:
        raise PersistenceError(f"{type(exc).__name__}: {exc}") from exc


# ======= Types =======

async def list_types() -> list[dict[str, Any]]:
    return await db.fetch_all("SELECT id, type FROM types ORDER BY type")


async def create_type(type_name: str) -> dict[str, Any]:
    return await _insert_returning(
        "INSERT INTO types (type) VALUES ($1) RETURNING id, type",
        type_name,
    )


async def delete_types(type_names: list[str]) -> int:
    status = await db.execute("DELETE FROM types WHERE type = ANY($1::text[])", type_names)
    return db.affected_rows(status)


# ======= Difficulties =======

async def list_difficulties() -> list[dict[str, Any]]:
    return await db.fetch_all("SELECT id, level FROM difficulties ORDER BY level")


async def create_difficulty(level: str) -> dict[str, Any]:
    return await _insert_returning(
        "INSERT INTO difficulties (level) VALUES ($1) RETURNING id, level",
        level,
    )


async def delete_difficulties(levels: list[str]) -> int:
    status = await db.execute("DELETE FROM difficulties WHERE level = ANY($1::text[])", levels)
    return db.affected_rows(status)


# ======= Categories =======

async def list_categories() -> list[dict[str, Any]]:
    return await db.fetch_all("SELECT id, name, opentdb_id FROM categories ORDER BY name")


async def create_category(name: str, opentdb_id: int) -> dict[str, Any]:
    return await _insert_returning(
        """
        INSERT INTO categories (name, opentdb_id)
        VALUES ($1, $2)
        RETURNING id, name, opentdb_id
        """,
        name,
        opentdb_id,
    )


async def delete_categories(names: list[str]) -> int:
    """
    Referencing questions keep their row; their category_id becomes NULL.
    """
    status = await db.execute("DELETE FROM categories WHERE name = ANY($1::text[])", names)
    return db.affected_rows(status)


# ======= Answers =======

async def find_answer(text: str) -> dict[str, Any] | None:
    with _db_errors(f"Answer '{text}' already exists."):
        return await db.fetch_one("SELECT id, answer FROM answers WHERE answer = $1", text)


async def create_answer(text: str) -> dict[str, Any]:
    return await _insert_returning(
        "INSERT INTO answers (answer) VALUES ($1) RETURNING id, answer",
        text,
    )


async def list_answers() -> list[dict[str, Any]]:
    return await db.fetch_all("SELECT id, answer FROM answers ORDER BY id")


async def update_answer_text(answer_id: int, text: str) -> None:
    with _db_errors(f"Answer '{text}' already exists."):
        await db.execute("UPDATE answers SET answer = $2 WHERE id = $1", answer_id, text)


async def delete_answer(answer_id: int) -> None:
    await db.execute("DELETE FROM answers WHERE id = $1", answer_id)


# ======= Questions =======

_QUESTION_DETAIL_SQL = """
    SELECT
      q.id,
      q.question,
      d.level AS difficulty,
      c.name AS category,
      t.type AS type,
      ca.answer AS correct_answer,
      COALESCE(
        array_agg(ia.answer ORDER BY ia.answer) FILTER (WHERE ia.id IS NOT NULL),
        '{}'::text[]
      ) AS incorrect_answers
    FROM questions q
    LEFT JOIN difficulties d ON d.id = q.difficulty_id
    LEFT JOIN categories c ON c.id = q.category_id
    LEFT JOIN types t ON t.id = q.type_id
    LEFT JOIN answers ca ON ca.id = q.correct_answer_id
    LEFT JOIN question_incorrect_answers qia ON qia.question_id = q.id
    LEFT JOIN answers ia ON ia.id = qia.answer_id
"""

_QUESTION_DETAIL_GROUP_BY = "GROUP BY q.id, d.level, c.name, t.type, ca.answer"


def _question_detail(row: dict[str, Any]) -> dict[str, Any]:
    row["incorrect_answers"] = list(row.get("incorrect_answers") or [])
    return row


async def find_question_by_text(text: str) -> dict[str, Any] | None:
    """
    Return the stored question with its reference names resolved, or None.
    """
    with _db_errors(f"Question '{text}' already exists."):
        row = await db.fetch_one(
            f"""
            {_QUESTION_DETAIL_SQL}
            WHERE q.question = $1
            {_QUESTION_DETAIL_GROUP_BY}
            """,
            text,
        )
    return _question_detail(row) if row is not None else None


async def count_questions_in_category(category_name: str) -> int:
    value = await db.fetch_val(
        """
        SELECT count(*)
        FROM questions q
        JOIN categories c ON c.id = q.category_id
        WHERE c.name = $1
        """,
        category_name,
    )
    return int(value or 0)


async def create_question(
    *,
    question: str,
    difficulty_id: int,
    category_id: int,
    type_id: int,
    correct_answer_id: int,
    incorrect_answer_ids: list[int],
) -> dict[str, Any]:
    """
    Insert a question and its incorrect-answer links in a single transaction.
    """
    with _db_errors(f"Question already exists: {question}"):
        async with db.transaction() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO questions (question, difficulty_id, category_id, type_id, correct_answer_id)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING id, question
                """,
                question,
                difficulty_id,
                category_id,
                type_id,
                correct_answer_id,
            )
            if row is None:
                raise PersistenceError("Failed to insert question.")
            question_id = int(row["id"])

            if incorrect_answer_ids:
                await conn.executemany(
                    """
                    INSERT INTO question_incorrect_answers (question_id, answer_id)
                    VALUES ($1, $2)
                    ON CONFLICT DO NOTHING
                    """,
                    [(question_id, answer_id) for answer_id in incorrect_answer_ids],
                )
            return dict(row)


async def list_question_texts() -> list[dict[str, Any]]:
    return await db.fetch_all("SELECT id, question FROM questions ORDER BY id")


async def update_question_text(question_id: int, text: str) -> None:
    with _db_errors(f"Question '{text}' already exists."):
        await db.execute("UPDATE questions SET question = $2 WHERE id = $1", question_id, text)


async def delete_question(question_id: int) -> None:
    await db.execute("DELETE FROM questions WHERE id = $1", question_id)


async def delete_all_questions() -> tuple[int, int]:
    """
    Delete every question, then every answer.

    Returns (questions_deleted, answers_deleted).
    """
    async with db.transaction() as conn:
        questions = await conn.execute("DELETE FROM questions")
        answers = await conn.execute("DELETE FROM answers")
    return db.affected_rows(questions), db.affected_rows(answers)


async def _insert_returning(sql: str, *args: Any) -> dict[str, Any]:
    with _db_errors(f"Duplicate value for {args!r}."):
        row = await db.fetch_one(sql, *args)
    if row is None:
        raise PersistenceError("Insert returned no row.")
    return row
