"""
Shared fixtures: an in-memory stand-in for `seeding.repository` and a fake
Open Trivia DB client.
"""

from __future__ import annotations

import random
from typing import Any

import pytest

from core.opentdb import RemoteCategory
from seeding.errors import PersistenceConflictError


class FakeRepository:
    """
    Same async surface as `seeding.repository`, backed by dicts.

    Unique constraints on names/texts raise PersistenceConflictError.
    """

    def __init__(self) -> None:
        self._ids = 0
        self.types: dict[int, dict[str, Any]] = {}
        self.difficulties: dict[int, dict[str, Any]] = {}
        self.categories: dict[int, dict[str, Any]] = {}
        self.answers: dict[int, dict[str, Any]] = {}
        self.questions: dict[int, dict[str, Any]] = {}
        self.writes = 0

    def _next_id(self) -> int:
        self._ids += 1
        return self._ids

    def _insert(self, table: dict[int, dict[str, Any]], key: str, row: dict[str, Any]) -> dict[str, Any]:
        if any(existing[key] == row[key] for existing in table.values()):
            raise PersistenceConflictError(f"duplicate {key}={row[key]!r}")
        row = {"id": self._next_id(), **row}
        table[row["id"]] = row
        self.writes += 1
        return dict(row)

    def _delete_by(self, table: dict[int, dict[str, Any]], key: str, values: list[str], fk: str) -> int:
        doomed = [row_id for row_id, row in table.items() if row[key] in values]
        for row_id in doomed:
            del table[row_id]
            for question in self.questions.values():
                if question[fk] == row_id:
                    question[fk] = None
        self.writes += len(doomed)
        return len(doomed)

    async def list_types(self):
        return [dict(r) for r in self.types.values()]

    async def create_type(self, type_name):
        return self._insert(self.types, "type", {"type": type_name})

    async def delete_types(self, type_names):
        return self._delete_by(self.types, "type", type_names, "type_id")

    async def list_difficulties(self):
        return [dict(r) for r in self.difficulties.values()]

    async def create_difficulty(self, level):
        return self._insert(self.difficulties, "level", {"level": level})

    async def delete_difficulties(self, levels):
        return self._delete_by(self.difficulties, "level", levels, "difficulty_id")

    async def list_categories(self):
        return [dict(r) for r in self.categories.values()]

    async def create_category(self, name, opentdb_id):
        if any(r["opentdb_id"] == opentdb_id for r in self.categories.values()):
            raise PersistenceConflictError(f"duplicate opentdb_id={opentdb_id}")
        return self._insert(self.categories, "name", {"name": name, "opentdb_id": opentdb_id})

    async def delete_categories(self, names):
        return self._delete_by(self.categories, "name", names, "category_id")

    async def find_answer(self, text):
        for row in self.answers.values():
            if row["answer"] == text:
                return dict(row)
        return None

    async def create_answer(self, text):
        return self._insert(self.answers, "answer", {"answer": text})

    async def list_answers(self):
        return [dict(r) for r in self.answers.values()]

    async def update_answer_text(self, answer_id, text):
        if any(r["answer"] == text and r["id"] != answer_id for r in self.answers.values()):
            raise PersistenceConflictError(f"duplicate answer={text!r}")
        self.answers[answer_id]["answer"] = text
        self.writes += 1

    async def delete_answer(self, answer_id):
        del self.answers[answer_id]
        for question in self.questions.values():
            if question["correct_answer_id"] == answer_id:
                question["correct_answer_id"] = None
            question["incorrect_answer_ids"] = [a for a in question["incorrect_answer_ids"] if a != answer_id]
        self.writes += 1

    def _name(self, table, row_id, key):
        row = table.get(row_id) if row_id is not None else None
        return row[key] if row else None

    async def find_question_by_text(self, text):
        for q in self.questions.values():
            if q["question"] == text:
                return {
                    "id": q["id"],
                    "question": q["question"],
                    "difficulty": self._name(self.difficulties, q["difficulty_id"], "level"),
                    "category": self._name(self.categories, q["category_id"], "name"),
                    "type": self._name(self.types, q["type_id"], "type"),
                    "correct_answer": self._name(self.answers, q["correct_answer_id"], "answer"),
                    "incorrect_answers": sorted(self.answers[a]["answer"] for a in q["incorrect_answer_ids"]),
                }
        return None

    async def create_question(self, *, question, difficulty_id, category_id, type_id, correct_answer_id,
                              incorrect_answer_ids):
        row = self._insert(
            self.questions,
            "question",
            {
                "question": question,
                "difficulty_id": difficulty_id,
                "category_id": category_id,
                "type_id": type_id,
                "correct_answer_id": correct_answer_id,
                "incorrect_answer_ids": list(dict.fromkeys(incorrect_answer_ids)),
            },
        )
        return {"id": row["id"], "question": row["question"]}

    async def count_questions_in_category(self, category_name):
        ids = {r["id"] for r in self.categories.values() if r["name"] == category_name}
        return sum(1 for q in self.questions.values() if q["category_id"] in ids)

    async def list_question_texts(self):
        return [{"id": q["id"], "question": q["question"]} for q in self.questions.values()]

    async def update_question_text(self, question_id, text):
        if any(q["question"] == text and q["id"] != question_id for q in self.questions.values()):
            raise PersistenceConflictError(f"duplicate question={text!r}")
        self.questions[question_id]["question"] = text
        self.writes += 1

    async def delete_question(self, question_id):
        del self.questions[question_id]
        self.writes += 1

    async def delete_all_questions(self):
        counts = (len(self.questions), len(self.answers))
        self.questions.clear()
        self.answers.clear()
        return counts


def make_item(
    n: int,
    *,
    category: str = "Science &amp; Nature",
    difficulty: str = "easy",
    type_: str = "multiple",
    correct: str | None = None,
    incorrect: list[str] | None = None,
) -> dict[str, Any]:
    """
    One /api.php result entry, as the remote sends it.
    """
    return {
        "type": type_,
        "difficulty": difficulty,
        "category": category,
        "question": f"Question number {n}?",
        "correct_answer": correct if correct is not None else f"Right {n}",
        "incorrect_answers": incorrect if incorrect is not None else [f"Wrong {n}a", f"Wrong {n}b", f"Wrong {n}c"],
    }


class FakeOpenTDB:
    """
    Serves each category's question pool sequentially, the way a session
    token never repeats a question.

    `failures` maps a 1-based get_questions call number to the exception
    raised on that call.
    """

    def __init__(
        self,
        *,
        categories: list[RemoteCategory] | None = None,
        pools: dict[int, list[dict[str, Any]]] | None = None,
        counts: dict[int, int] | None = None,
        failures: dict[int, Exception] | None = None,
        types: list[str] | None = None,
        difficulties: list[str] | None = None,
    ) -> None:
        self.categories = categories if categories is not None else [RemoteCategory(17, "Science & Nature")]
        self.pools = pools or {}
        self.counts = counts or {}
        self.failures = failures or {}
        self.types = types if types is not None else ["multiple", "boolean"]
        self.difficulties = difficulties if difficulties is not None else ["easy", "medium", "hard"]
        self.served: dict[int, int] = {}
        self.calls: list[tuple[int, int, str]] = []
        self.tokens_issued = 0
        self.token_error: Exception | None = None

    async def get_types(self):
        return list(self.types)

    async def get_difficulties(self):
        return list(self.difficulties)

    async def get_categories(self):
        return list(self.categories)

    async def questions_in_category(self, category_id):
        if category_id in self.counts:
            return self.counts[category_id]
        return len(self.pools.get(category_id, []))

    async def request_token(self):
        if self.token_error is not None:
            raise self.token_error
        self.tokens_issued += 1
        return f"token-{self.tokens_issued}"

    async def get_questions(self, amount, category_id, token):
        self.calls.append((amount, category_id, token))
        failure = self.failures.get(len(self.calls))
        if failure is not None:
            raise failure
        start = self.served.get(category_id, 0)
        items = self.pools.get(category_id, [])[start:start + amount]
        self.served[category_id] = start + len(items)
        return {"response_code": 0, "results": items}


@pytest.fixture
def repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def remote() -> FakeOpenTDB:
    return FakeOpenTDB()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)
