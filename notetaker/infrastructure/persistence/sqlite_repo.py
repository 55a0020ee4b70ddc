"""
Relational lecture repository on SQLite.
Blocking sqlite3 calls run in a worker thread behind one locked connection.
"""
import asyncio
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional

from notetaker.domain.models import UPDATABLE_FIELDS, Job, JobStatus, utcnow

logger = logging.getLogger(__name__)

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS lectures (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    title TEXT NOT NULL,
    duration_seconds INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'uploaded',
    audio_path TEXT,
    raw_transcript TEXT,
    filtered_transcript TEXT,
    summary TEXT,
    notes TEXT,
    qna TEXT,
    error_message TEXT,
    created_at TEXT NOT NULL,
    processing_started_at TEXT,
    processing_completed_at TEXT,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_lectures_owner ON lectures(owner_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_lectures_status ON lectures(status);
"""

_COLUMNS = (
    "id", "owner_id", "title", "duration_seconds", "status", "audio_path",
    "raw_transcript", "filtered_transcript", "summary", "notes", "qna",
    "error_message", "created_at", "processing_started_at",
    "processing_completed_at", "updated_at",
)
_TIMESTAMPS = ("created_at", "processing_started_at", "processing_completed_at", "updated_at")


def _to_db(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, JobStatus):
        return value.value
    return value


def _row_to_job(row: sqlite3.Row) -> Job:
    data = dict(row)
    data["status"] = JobStatus(data["status"])
    for key in _TIMESTAMPS:
        if data[key] is not None:
            data[key] = datetime.fromisoformat(data[key])
    return Job(**data)


class SqliteJobRepository:
    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.executescript(_CREATE_TABLES)
        self.conn.commit()

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    async def _run(self, fn, *args):
        return await asyncio.to_thread(self._locked, fn, *args)

    def _locked(self, fn, *args):
        with self._lock:
            return fn(*args)

    def _fetch(self, job_id: str, owner_id: str) -> Optional[Job]:
        row = self.conn.execute(
            "SELECT * FROM lectures WHERE id = ? AND owner_id = ?",
            (job_id, owner_id),
        ).fetchone()
        return _row_to_job(row) if row else None

    def _insert(self, job: Job) -> Job:
        now = utcnow()
        values: Dict[str, Any] = {name: getattr(job, name) for name in _COLUMNS}
        values["created_at"] = job.created_at or now
        values["updated_at"] = now
        placeholders = ", ".join("?" for _ in _COLUMNS)
        try:
            self.conn.execute(
                f"INSERT INTO lectures ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                tuple(_to_db(values[name]) for name in _COLUMNS),
            )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Job {job.id} already exists") from e
        self.conn.commit()
        return self._fetch(job.id, job.owner_id)

    def _update(self, job_id: str, owner_id: str, changes: Dict[str, Any]) -> Optional[Job]:
        changes = dict(changes, updated_at=utcnow())
        assignments = ", ".join(f"{name} = ?" for name in changes)
        cur = self.conn.execute(
            f"UPDATE lectures SET {assignments} WHERE id = ? AND owner_id = ?",
            (*(_to_db(v) for v in changes.values()), job_id, owner_id),
        )
        self.conn.commit()
        if cur.rowcount == 0:
            return None
        return self._fetch(job_id, owner_id)

    def _delete(self, job_id: str, owner_id: str) -> bool:
        cur = self.conn.execute(
            "DELETE FROM lectures WHERE id = ? AND owner_id = ?", (job_id, owner_id)
        )
        self.conn.commit()
        return cur.rowcount > 0

    def _select_owner(self, owner_id: str) -> List[Job]:
        rows = self.conn.execute(
            "SELECT * FROM lectures WHERE owner_id = ? ORDER BY created_at DESC",
            (owner_id,),
        ).fetchall()
        return [_row_to_job(r) for r in rows]

    def _select_status(self, statuses: List[str]) -> List[Job]:
        if not statuses:
            return []
        placeholders = ", ".join("?" for _ in statuses)
        rows = self.conn.execute(
            f"SELECT * FROM lectures WHERE status IN ({placeholders})", statuses
        ).fetchall()
        return [_row_to_job(r) for r in rows]

    async def create(self, job: Job) -> Job:
        return await self._run(self._insert, job)

    async def get(self, job_id: str, owner_id: str) -> Optional[Job]:
        return await self._run(self._fetch, job_id, owner_id)

    async def update(self, job_id: str, owner_id: str, **changes) -> Optional[Job]:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        return await self._run(self._update, job_id, owner_id, changes)

    async def delete(self, job_id: str, owner_id: str) -> bool:
        return await self._run(self._delete, job_id, owner_id)

    async def list_for_owner(self, owner_id: str) -> List[Job]:
        return await self._run(self._select_owner, owner_id)

    async def list_by_status(self, statuses: Iterable[JobStatus]) -> List[Job]:
        return await self._run(self._select_status, [JobStatus(s).value for s in statuses])
