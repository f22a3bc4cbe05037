"""
Question lookup business logic.
"""

from __future__ import annotations

import random

from fastapi import HTTPException

from . import repository


async def sample_questions(
    *,
    difficulty: str | None,
    category: str | None,
    amount: int = 1,
    rng: random.Random | None = None,
) -> list[dict]:
    """
    Return up to `amount` random questions for a difficulty and category.
    """
    difficulty = (difficulty or "").strip()
    category = (category or "").strip()
    if not difficulty or not category:
        raise HTTPException(status_code=400, detail="Missing difficulty or category parameter.")

    rows = await repository.questions_for(difficulty=difficulty, category=category)
    picked = (rng or random).sample(rows, k=min(amount, len(rows)))
    return [
        {
            "question": str(row["question"]),
            "correct_answer": row["correct_answer"],
            "incorrect_answers": list(row["incorrect_answers"] or []),
        }
        for row in picked
    ]
