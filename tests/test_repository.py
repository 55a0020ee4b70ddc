from __future__ import annotations

from datetime import timedelta

import pytest

from notetaker.domain.models import Job, JobStatus, utcnow
from notetaker.infrastructure.persistence.in_memory_repo import InMemoryJobRepository
from notetaker.infrastructure.persistence.sqlite_repo import SqliteJobRepository


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "memory":
        yield InMemoryJobRepository()
    else:
        repository = SqliteJobRepository(tmp_path / "lectures.db")
        yield repository
        repository.close()


def _job(job_id: str = "lec-1", owner_id: str = "alice", **kwargs) -> Job:
    return Job(id=job_id, owner_id=owner_id, title="Optics", duration_seconds=900, **kwargs)


async def test_create_and_get_round_trip(repo) -> None:
    created = await repo.create(_job(audio_path="uploads/lec-1.webm"))

    fetched = await repo.get("lec-1", "alice")
    assert fetched == created
    assert fetched.status == JobStatus.UPLOADED
    assert fetched.duration_minutes == 15
    assert fetched.created_at is not None and fetched.updated_at is not None
    assert fetched.summary is None


async def test_duplicate_id_is_rejected(repo) -> None:
    await repo.create(_job())
    with pytest.raises(ValueError):
        await repo.create(_job())


async def test_other_owner_sees_nothing(repo) -> None:
    await repo.create(_job())

    assert await repo.get("lec-1", "mallory") is None
    assert await repo.update("lec-1", "mallory", title="pwned") is None
    assert await repo.delete("lec-1", "mallory") is False
    assert await repo.list_for_owner("mallory") == []
    # indistinguishable from a lecture that does not exist
    assert await repo.get("missing", "alice") is None
    assert await repo.update("missing", "alice", title="x") is None
    assert await repo.delete("missing", "alice") is False

    untouched = await repo.get("lec-1", "alice")
    assert untouched.title == "Optics"


async def test_update_sets_fields_and_refreshes_updated_at(repo) -> None:
    created = await repo.create(_job())
    started = utcnow()

    updated = await repo.update("lec-1", "alice", status=JobStatus.PROCESSING, processing_started_at=started)

    assert updated.status == JobStatus.PROCESSING
    assert updated.processing_started_at == started
    assert updated.updated_at >= created.updated_at
    assert (await repo.get("lec-1", "alice")).status == JobStatus.PROCESSING


async def test_update_rejects_immutable_fields(repo) -> None:
    await repo.create(_job())
    with pytest.raises(ValueError):
        await repo.update("lec-1", "alice", id="lec-2")
    with pytest.raises(ValueError):
        await repo.update("lec-1", "alice", duration_seconds=1)
    with pytest.raises(ValueError):
        await repo.update("lec-1", "alice", created_at=utcnow())


async def test_returned_records_are_snapshots(repo) -> None:
    await repo.create(_job())
    fetched = await repo.get("lec-1", "alice")
    fetched.title = "changed locally"

    assert (await repo.get("lec-1", "alice")).title == "Optics"


async def test_list_for_owner_newest_first(repo) -> None:
    now = utcnow()
    await repo.create(_job("old", created_at=now - timedelta(hours=1)))
    await repo.create(_job("new", created_at=now))
    await repo.create(_job("theirs", owner_id="bob", created_at=now))

    assert [j.id for j in await repo.list_for_owner("alice")] == ["new", "old"]


async def test_delete_removes_record(repo) -> None:
    await repo.create(_job())

    assert await repo.delete("lec-1", "alice") is True
    assert await repo.get("lec-1", "alice") is None


async def test_list_by_status(repo) -> None:
    await repo.create(_job("a"))
    await repo.create(_job("b", owner_id="bob"))
    await repo.create(_job("c"))
    await repo.update("c", "alice", status=JobStatus.COMPLETED)

    found = await repo.list_by_status([JobStatus.UPLOADED, JobStatus.PROCESSING])

    assert sorted(j.id for j in found) == ["a", "b"]
    assert await repo.list_by_status([]) == []


def test_sqlite_persists_across_instances(tmp_path) -> None:
    import asyncio

    path = tmp_path / "lectures.db"

    async def scenario():
        first = SqliteJobRepository(path)
        await first.create(_job())
        await first.update("lec-1", "alice", status=JobStatus.PROCESSING, summary=None)
        first.close()

        second = SqliteJobRepository(path)
        try:
            return await second.get("lec-1", "alice")
        finally:
            second.close()

    job = asyncio.run(scenario())
    assert job.status == JobStatus.PROCESSING
    assert job.title == "Optics"
