from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_transition_to(self, target: "JobStatus") -> bool:
        """
        Forward-only lifecycle. PROCESSING -> PROCESSING is a re-claim after a restart.
        """
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    JobStatus.UPLOADED: {JobStatus.PROCESSING},
    JobStatus.PROCESSING: {JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


@dataclass
class Job:
    """One uploaded lecture and everything derived from it."""
    id: str
    owner_id: str
    title: str
    duration_seconds: int
    status: JobStatus = JobStatus.UPLOADED
    audio_path: Optional[str] = None
    raw_transcript: Optional[str] = None
    filtered_transcript: Optional[str] = None
    summary: Optional[str] = None
    notes: Optional[str] = None
    qna: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    processing_started_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def duration_minutes(self) -> int:
        return self.duration_seconds // 60


# id, owner, duration and creation time are immutable; updated_at is maintained by the store
UPDATABLE_FIELDS = frozenset(f.name for f in fields(Job)) - {
    "id", "owner_id", "duration_seconds", "created_at", "updated_at",
}


@dataclass
class Chunk:
    """A time-bounded slice of the source audio. Never persisted."""
    sequence_index: int
    source_offset_seconds: float
    source_duration_seconds: float
    path: Optional[Path] = None


@dataclass
class ChunkTranscript:
    sequence_index: int
    text: str


_PROGRESS = {
    JobStatus.UPLOADED: (10, "Uploaded, preparing for processing..."),
    JobStatus.PROCESSING: (50, "Processing audio and generating notes..."),
    JobStatus.COMPLETED: (100, "Processing completed!"),
    JobStatus.FAILED: (0, "Processing failed. Please try again."),
}


def progress_for(status: JobStatus) -> Tuple[int, str]:
    """Coarse (percentage, message) pair derived from status alone."""
    return _PROGRESS[status]


@dataclass
class StatusView:
    id: str
    title: str
    status: JobStatus
    progress_percentage: int
    progress_message: str
    duration_minutes: int
    created_at: Optional[datetime]
    processing_started_at: Optional[datetime]
    processing_completed_at: Optional[datetime]

    @classmethod
    def from_job(cls, job: Job) -> "StatusView":
        percentage, message = progress_for(job.status)
        return cls(
            id=job.id,
            title=job.title,
            status=job.status,
            progress_percentage=percentage,
            progress_message=message,
            duration_minutes=job.duration_minutes,
            created_at=job.created_at,
            processing_started_at=job.processing_started_at,
            processing_completed_at=job.processing_completed_at,
        )
