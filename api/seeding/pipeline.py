"""
Question ingestion pipeline.

For every category (in random order) the pipeline asks Open Trivia DB how many
questions exist, then fetches them in batches of at most `max_batch_size`
until the remote count is used up or the local count for that category has
caught up with it. Each fetched question is normalized and handed to the
DeduplicationResolver.

Batches, categories and questions are processed strictly one at a time so the
client's rate limit spacing holds and dedup decisions never race each other.
"""

from __future__ import annotations

import enum
import html
import logging
import random
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Iterable

from core import config
from core.opentdb import OpenTDBClient, OpenTDBError, RemoteProtocolError

from . import repository
from .dedup import DeduplicationResolver, Diverged, QuestionCandidate, Resolution, Skipped, Stored
from .errors import InvalidQuestionError, SeedingError
from .reference import ReferenceDataSync
from .tokens import SessionTokenManager

logger = logging.getLogger(__name__)

# A token that comes back empty again right after a reset will not recover.
MAX_CONSECUTIVE_TOKEN_RESETS = 3


class CategoryState(enum.Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    PROCESSING = "processing"
    DONE = "done"


@dataclass
class Tally:
    processed: int = 0
    stored: int = 0
    skipped: int = 0
    diverged: int = 0
    failed: int = 0

    def record(self, resolution: Resolution) -> None:
        if isinstance(resolution, Stored):
            self.stored += 1
        elif isinstance(resolution, Skipped):
            self.skipped += 1
        elif isinstance(resolution, Diverged):
            self.diverged += 1

    def add(self, other: "Tally") -> None:
        self.processed += other.processed
        self.stored += other.stored
        self.skipped += other.skipped
        self.diverged += other.diverged
        self.failed += other.failed


@dataclass
class BatchStats(Tally):
    number: int = 0
    requested: int = 0


@dataclass
class CategoryStats:
    name: str
    opentdb_id: int
    remote_total: int = 0
    state: CategoryState = CategoryState.PENDING
    fetches: int = 0
    abandoned_batches: int = 0
    batches: list[BatchStats] = field(default_factory=list)
    totals: Tally = field(default_factory=Tally)


@dataclass
class RunStats:
    categories: list[CategoryStats] = field(default_factory=list)
    skipped_categories: list[str] = field(default_factory=list)
    failed_categories: list[str] = field(default_factory=list)
    totals: Tally = field(default_factory=Tally)


def normalize_question(item: dict[str, Any]) -> QuestionCandidate:
    """
    Turn one /api.php result into a QuestionCandidate.

    Only the category is HTML-entity decoded, to match the category names
    stored from /api_category.php. Surrounding whitespace is stripped from
    the question and answer texts.
    """
    try:
        return QuestionCandidate(
            question=str(item["question"]).strip(),
            difficulty=str(item["difficulty"]),
            category=html.unescape(str(item["category"])),
            type=str(item["type"]),
            correct_answer=str(item["correct_answer"]).strip(),
            incorrect_answers=tuple(str(answer).strip() for answer in item["incorrect_answers"]),
        )
    except (KeyError, TypeError) as exc:
        raise InvalidQuestionError(f"Malformed question payload: {exc!r}") from exc


class QuestionIngestionPipeline:
    def __init__(
        self,
        *,
        client: OpenTDBClient,
        tokens: SessionTokenManager,
        references: ReferenceDataSync,
        resolver: DeduplicationResolver,
        repo: ModuleType | Any = repository,
        max_batch_size: int | None = None,
        max_batch_retries: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._client = client
        self._tokens = tokens
        self._references = references
        self._resolver = resolver
        self._repo = repo
        self.max_batch_size = max_batch_size or config.api_max_amount()
        self.max_batch_retries = config.max_batch_retries() if max_batch_retries is None else max_batch_retries
        self._rng = rng or random.Random()

    async def run(self, only_categories: Iterable[str] | None = None) -> RunStats:
        """
        Ingest every known category, or only the named ones.
        """
        wanted = {name for name in (only_categories or []) if name}
        categories = list(self._references.cache.categories.values())
        self._rng.shuffle(categories)

        unknown = wanted - {category["name"] for category in categories}
        if unknown:
            logger.warning("categories_unknown names=%s", sorted(unknown))

        stats = RunStats()
        for category in categories:
            if wanted and category["name"] not in wanted:
                logger.info("category_skipped name=%s", category["name"])
                stats.skipped_categories.append(category["name"])
                continue

            try:
                category_stats = await self.ingest_category(category)
            except OpenTDBError:
                logger.exception("category_failed name=%s", category["name"])
                stats.failed_categories.append(category["name"])
                continue

            stats.categories.append(category_stats)
            stats.totals.add(category_stats.totals)

        logger.info(
            "ingestion_complete categories=%d processed=%d stored=%d skipped=%d diverged=%d failed=%d",
            len(stats.categories),
            stats.totals.processed,
            stats.totals.stored,
            stats.totals.skipped,
            stats.totals.diverged,
            stats.totals.failed,
        )
        return stats

    async def ingest_category(self, category: dict[str, Any]) -> CategoryStats:
        name = category["name"]
        opentdb_id = int(category["opentdb_id"])
        stats = CategoryStats(name=name, opentdb_id=opentdb_id)

        total = await self._client.questions_in_category(opentdb_id)
        stats.remote_total = total
        remaining = total
        retries = 0
        token_resets = 0
        logger.info("category_started name=%s opentdb_id=%d remote_total=%d", name, opentdb_id, total)

        while remaining > 0:
            stored_locally = await self._repo.count_questions_in_category(name)
            if stored_locally >= total:
                break

            amount = min(remaining, self.max_batch_size)
            remaining -= amount
            stats.state = CategoryState.FETCHING
            stats.fetches += 1

            try:
                payload = await self._client.get_questions(amount, opentdb_id, self._tokens.token)
            except OpenTDBError as exc:
                token_empty = isinstance(exc, RemoteProtocolError) and exc.is_token_empty
                if token_empty and token_resets < MAX_CONSECUTIVE_TOKEN_RESETS:
                    # Same batch again with a fresh token; the batch counter does not move.
                    token_resets += 1
                    logger.warning("batch_token_empty category=%s amount=%d", name, amount)
                    await self._tokens.reset()
                    remaining += amount
                    continue

                token_resets = 0
                if self._batch_failed(stats, exc, amount, retries):
                    retries += 1
                    remaining += amount
                else:
                    retries = 0
                continue

            retries = 0
            token_resets = 0
            results = payload.get("results")
            if not isinstance(results, list):
                logger.warning("batch_without_results category=%s amount=%d", name, amount)
                stats.abandoned_batches += 1
                continue

            stats.state = CategoryState.PROCESSING
            batch = await self._process_batch(results, number=len(stats.batches) + 1, requested=amount)
            stats.batches.append(batch)
            stats.totals.add(batch)
            logger.info(
                "batch_done category=%s batch=%d requested=%d processed=%d stored=%d remaining=%d",
                name,
                batch.number,
                amount,
                batch.processed,
                batch.stored,
                remaining,
            )

        stats.state = CategoryState.DONE
        logger.info(
            "category_done name=%s batches=%d processed=%d stored=%d skipped=%d diverged=%d failed=%d",
            name,
            len(stats.batches),
            stats.totals.processed,
            stats.totals.stored,
            stats.totals.skipped,
            stats.totals.diverged,
            stats.totals.failed,
        )
        return stats

    def _batch_failed(self, stats: CategoryStats, exc: OpenTDBError, amount: int, retries: int) -> bool:
        """
        Log a failed fetch. Returns True when the batch should be retried.
        """
        if retries < self.max_batch_retries:
            logger.warning(
                "batch_retry category=%s amount=%d attempt=%d error=%s",
                stats.name,
                amount,
                retries + 1,
                exc,
            )
            return True
        logger.error("batch_abandoned category=%s amount=%d error=%s", stats.name, amount, exc)
        stats.abandoned_batches += 1
        return False

    async def _process_batch(self, results: list[Any], *, number: int, requested: int) -> BatchStats:
        batch = BatchStats(number=number, requested=requested)
        for item in results:
            batch.processed += 1
            try:
                candidate = normalize_question(item)
                resolution = await self._resolver.resolve(candidate)
            except SeedingError as exc:
                batch.failed += 1
                question = item.get("question") if isinstance(item, dict) else None
                logger.error("question_failed batch=%d question=%r error=%s", number, question, exc)
                continue
            batch.record(resolution)
        return batch
