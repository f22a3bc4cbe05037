"""
Seeding "service layer": one full sync + ingestion + maintenance run.

Order matters:
1. acquire a session token (fatal on failure)
2. converge reference tables and load the reference cache
3. ingest questions category by category
4. trim stray whitespace
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Iterable

from core.opentdb import OpenTDBClient

from . import maintenance, repository
from .dedup import DeduplicationResolver
from .maintenance import TrimReport
from .pipeline import QuestionIngestionPipeline, RunStats
from .reference import ReferenceDataSync, SyncReport
from .tokens import SessionTokenManager

logger = logging.getLogger(__name__)


@dataclass
class SeedReport:
    sync: list[SyncReport] = field(default_factory=list)
    ingestion: RunStats = field(default_factory=RunStats)
    trims: list[TrimReport] = field(default_factory=list)
    wiped: tuple[int, int] | None = None
    token_resets: int = 0


async def run_seed(
    *,
    only_categories: Iterable[str] | None = None,
    wipe: bool = False,
    trim: bool = True,
    client: OpenTDBClient | None = None,
    repo: ModuleType | Any = repository,
    rng: random.Random | None = None,
) -> SeedReport:
    client = client or OpenTDBClient()
    report = SeedReport()

    tokens = SessionTokenManager(client)
    await tokens.acquire()

    if wipe:
        report.wiped = await repo.delete_all_questions()
        logger.warning("questions_wiped questions=%d answers=%d", *report.wiped)

    references = ReferenceDataSync(client, repo=repo)
    report.sync = await references.sync_all()

    pipeline = QuestionIngestionPipeline(
        client=client,
        tokens=tokens,
        references=references,
        resolver=DeduplicationResolver(references, repo=repo),
        repo=repo,
        rng=rng,
    )
    report.ingestion = await pipeline.run(only_categories)
    report.token_resets = tokens.resets

    if trim:
        report.trims = await maintenance.trim_all(repo=repo)

    return report
