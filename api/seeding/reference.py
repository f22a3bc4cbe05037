"""
Reference data sync: types, difficulties and categories.

Each table is converged to the remote set by name:
- to_add    = remote - local
- to_delete = local - remote
Deletes run before adds. There is no update-in-place, so a renamed remote
category shows up as one delete plus one add; questions pointing at the
deleted row keep a NULL category.

The sync component also owns the in-memory ReferenceCache the ingestion
pipeline resolves names against. It is loaded by refresh() and reused until
the next refresh().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Awaitable, Callable

from core.opentdb import OpenTDBClient

from . import repository
from .errors import ReferenceLookupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncReport:
    kind: str
    added: tuple[str, ...] = ()
    deleted: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.added or self.deleted)


@dataclass
class ReferenceCache:
    difficulties: dict[str, int] = field(default_factory=dict)
    types: dict[str, int] = field(default_factory=dict)
    categories: dict[str, dict[str, Any]] = field(default_factory=dict)

    def difficulty_id(self, level: str) -> int:
        try:
            return self.difficulties[level]
        except KeyError:
            raise ReferenceLookupError("difficulty", level) from None

    def type_id(self, type_name: str) -> int:
        try:
            return self.types[type_name]
        except KeyError:
            raise ReferenceLookupError("type", type_name) from None

    def category(self, name: str) -> dict[str, Any]:
        try:
            return self.categories[name]
        except KeyError:
            raise ReferenceLookupError("category", name) from None

    def category_by_remote_id(self, opentdb_id: int) -> dict[str, Any] | None:
        for category in self.categories.values():
            if category["opentdb_id"] == opentdb_id:
                return category
        return None


class ReferenceDataSync:
    def __init__(self, client: OpenTDBClient, *, repo: ModuleType | Any = repository) -> None:
        self._client = client
        self._repo = repo
        self._cache: ReferenceCache | None = None

    @property
    def cache(self) -> ReferenceCache:
        if self._cache is None:
            raise RuntimeError("Reference cache is not loaded. Call refresh() first.")
        return self._cache

    async def refresh(self) -> ReferenceCache:
        difficulties = await self._repo.list_difficulties()
        types = await self._repo.list_types()
        categories = await self._repo.list_categories()
        self._cache = ReferenceCache(
            difficulties={row["level"]: int(row["id"]) for row in difficulties},
            types={row["type"]: int(row["id"]) for row in types},
            categories={row["name"]: dict(row) for row in categories},
        )
        logger.info(
            "reference_cache_loaded difficulties=%d types=%d categories=%d",
            len(difficulties),
            len(types),
            len(categories),
        )
        return self._cache

    async def sync_all(self) -> list[SyncReport]:
        """
        Converge all three tables, then reload the cache.
        """
        reports = [
            await self.sync_types(),
            await self.sync_difficulties(),
            await self.sync_categories(),
        ]
        await self.refresh()
        return reports

    async def sync_types(self) -> SyncReport:
        remote = await self._client.get_types()
        local = [row["type"] for row in await self._repo.list_types()]
        return await self._reconcile(
            "types",
            remote={name: None for name in remote},
            local=local,
            delete=self._repo.delete_types,
            create=lambda name, _: self._repo.create_type(name),
        )

    async def sync_difficulties(self) -> SyncReport:
        remote = await self._client.get_difficulties()
        local = [row["level"] for row in await self._repo.list_difficulties()]
        return await self._reconcile(
            "difficulties",
            remote={name: None for name in remote},
            local=local,
            delete=self._repo.delete_difficulties,
            create=lambda name, _: self._repo.create_difficulty(name),
        )

    async def sync_categories(self) -> SyncReport:
        remote = await self._client.get_categories()
        local = [row["name"] for row in await self._repo.list_categories()]
        return await self._reconcile(
            "categories",
            remote={category.name: category.id for category in remote},
            local=local,
            delete=self._repo.delete_categories,
            create=self._repo.create_category,
        )

    async def _reconcile(
        self,
        kind: str,
        *,
        remote: dict[str, Any],
        local: list[str],
        delete: Callable[[list[str]], Awaitable[Any]],
        create: Callable[[str, Any], Awaitable[Any]],
    ) -> SyncReport:
        to_add = sorted(set(remote) - set(local))
        to_delete = sorted(set(local) - set(remote))

        if to_delete:
            await delete(to_delete)
        for name in to_add:
            await create(name, remote[name])

        logger.info(
            "reference_sync kind=%s remote=%d local=%d added=%d deleted=%d",
            kind,
            len(remote),
            len(local),
            len(to_add),
            len(to_delete),
        )
        if to_delete:
            logger.warning("reference_deleted kind=%s names=%s", kind, to_delete)
        return SyncReport(kind=kind, added=tuple(to_add), deleted=tuple(to_delete))
