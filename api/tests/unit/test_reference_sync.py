"""
Reference table reconciliation: set differences by name, deletes before adds.
"""

from __future__ import annotations

import pytest

from core.opentdb import RemoteCategory
from seeding.errors import ReferenceLookupError
from seeding.reference import ReferenceDataSync


@pytest.mark.unit
@pytest.mark.asyncio
async def test_first_sync_inserts_remote_sets(repo, remote):
    remote.categories = [RemoteCategory(9, "General Knowledge"), RemoteCategory(17, "Science & Nature")]
    sync = ReferenceDataSync(remote, repo=repo)

    reports = await sync.sync_all()

    assert {r.kind: r.added for r in reports} == {
        "types": ("boolean", "multiple"),
        "difficulties": ("easy", "hard", "medium"),
        "categories": ("General Knowledge", "Science & Nature"),
    }
    assert all(r.deleted == () for r in reports)
    assert sync.cache.category("Science & Nature")["opentdb_id"] == 17
    assert sync.cache.category_by_remote_id(9)["name"] == "General Knowledge"
    assert sync.cache.category_by_remote_id(99) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_second_sync_without_remote_change_writes_nothing(repo, remote):
    sync = ReferenceDataSync(remote, repo=repo)
    await sync.sync_all()
    writes = repo.writes

    reports = await sync.sync_all()

    assert not any(r.changed for r in reports)
    assert repo.writes == writes


@pytest.mark.unit
@pytest.mark.asyncio
async def test_extra_local_rows_are_deleted(repo, remote):
    await repo.create_difficulty("impossible")
    await repo.create_type("essay")
    sync = ReferenceDataSync(remote, repo=repo)

    reports = {r.kind: r for r in await sync.sync_all()}

    assert reports["difficulties"].deleted == ("impossible",)
    assert reports["types"].deleted == ("essay",)
    assert sorted(sync.cache.difficulties) == ["easy", "hard", "medium"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_renamed_category_is_delete_plus_add_and_orphans_questions(repo, remote):
    remote.categories = [RemoteCategory(10, "Books")]
    sync = ReferenceDataSync(remote, repo=repo)
    await sync.sync_all()
    answer = await repo.create_answer("Tolkien")
    question = await repo.create_question(
        question="Who wrote The Hobbit?",
        difficulty_id=sync.cache.difficulty_id("easy"),
        category_id=sync.cache.category("Books")["id"],
        type_id=sync.cache.type_id("multiple"),
        correct_answer_id=answer["id"],
        incorrect_answer_ids=[],
    )

    remote.categories = [RemoteCategory(10, "Entertainment: Books")]
    report = await sync.sync_categories()

    assert report.deleted == ("Books",)
    assert report.added == ("Entertainment: Books",)
    assert repo.questions[question["id"]]["category_id"] is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cache_is_stale_until_refresh(repo, remote):
    sync = ReferenceDataSync(remote, repo=repo)
    await sync.sync_all()

    await repo.create_category("Mythology", 20)
    with pytest.raises(ReferenceLookupError):
        sync.cache.category("Mythology")

    await sync.refresh()
    assert sync.cache.category("Mythology")["opentdb_id"] == 20


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unknown_names_raise_reference_lookup_error(repo, remote):
    sync = ReferenceDataSync(remote, repo=repo)
    await sync.sync_all()

    with pytest.raises(ReferenceLookupError) as info:
        sync.cache.difficulty_id("legendary")
    assert (info.value.kind, info.value.name) == ("difficulty", "legendary")

    with pytest.raises(ReferenceLookupError):
        sync.cache.type_id("essay")


def test_cache_before_refresh_raises(repo, remote):
    sync = ReferenceDataSync(remote, repo=repo)

    with pytest.raises(RuntimeError):
        sync.cache
