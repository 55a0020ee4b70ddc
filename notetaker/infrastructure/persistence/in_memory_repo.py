from dataclasses import replace
from threading import Lock
from typing import Dict, Iterable, List, Optional

from notetaker.domain.models import UPDATABLE_FIELDS, Job, JobStatus, utcnow


class InMemoryJobRepository:
    """
    Document-style repository: one record per lecture keyed by id.

    Records are copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = Lock()

    def _owned(self, job_id: str, owner_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        if job is None or job.owner_id != owner_id:
            return None
        return job

    async def create(self, job: Job) -> Job:
        now = utcnow()
        stored = replace(job, created_at=job.created_at or now, updated_at=now)
        with self._lock:
            if stored.id in self._jobs:
                raise ValueError(f"Job {stored.id} already exists")
            self._jobs[stored.id] = stored
        return replace(stored)

    async def get(self, job_id: str, owner_id: str) -> Optional[Job]:
        with self._lock:
            job = self._owned(job_id, owner_id)
            return replace(job) if job else None

    async def update(self, job_id: str, owner_id: str, **changes) -> Optional[Job]:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        with self._lock:
            job = self._owned(job_id, owner_id)
            if job is None:
                return None
            updated = replace(job, **changes, updated_at=utcnow())
            self._jobs[job_id] = updated
            return replace(updated)

    async def delete(self, job_id: str, owner_id: str) -> bool:
        with self._lock:
            if self._owned(job_id, owner_id) is None:
                return False
            del self._jobs[job_id]
            return True

    async def list_for_owner(self, owner_id: str) -> List[Job]:
        with self._lock:
            jobs = [replace(j) for j in self._jobs.values() if j.owner_id == owner_id]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs

    async def list_by_status(self, statuses: Iterable[JobStatus]) -> List[Job]:
        wanted = set(statuses)
        with self._lock:
            return [replace(j) for j in self._jobs.values() if j.status in wanted]
