"""
Question lookup persistence (raw SQL, read-only).
"""

from __future__ import annotations

from core import db


async def questions_for(*, difficulty: str, category: str) -> list[dict]:
    """
    All questions for one difficulty level and category name, with answers.
    """
    rows = await db.fetch_all(
        """
        SELECT
          q.question,
          ca.answer AS correct_answer,
          COALESCE(
            array_agg(ia.answer ORDER BY ia.answer) FILTER (WHERE ia.id IS NOT NULL),
            '{}'::text[]
          ) AS incorrect_answers
        FROM questions q
        JOIN difficulties d ON d.id = q.difficulty_id
        JOIN categories c ON c.id = q.category_id
        LEFT JOIN answers ca ON ca.id = q.correct_answer_id
        LEFT JOIN question_incorrect_answers qia ON qia.question_id = q.id
        LEFT JOIN answers ia ON ia.id = qia.answer_id
        WHERE d.level = $1
          AND c.name = $2
        GROUP BY q.id, ca.answer
        """,
        difficulty,
        category,
    )
    return rows
