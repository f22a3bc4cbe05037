"""
FastAPI router for the question lookup endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from . import schemas, service

router = APIRouter()


@router.get("/questions", response_model=list[schemas.QuestionOut])
async def get_questions(
    difficulty: str | None = Query(default=None, max_length=50),
    category: str | None = Query(default=None, max_length=200),
    amount: int = Query(default=1, ge=1),
) -> list[dict]:
    """
    Shuffled sample of stored questions for one difficulty and category.

    Both `difficulty` and `category` are required; a missing one is a 400.
    """
    return await service.sample_questions(difficulty=difficulty, category=category, amount=amount)
