from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from notetaker.domain.models import Job, JobStatus, StatusView, progress_for


class Progress(BaseModel):
    percentage: int
    message: str


class LectureSummary(BaseModel):
    id: str
    title: str
    status: JobStatus
    progress: Progress
    duration_minutes: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: Job) -> "LectureSummary":
        percentage, message = progress_for(job.status)
        return cls(
            id=job.id,
            title=job.title,
            status=job.status,
            progress=Progress(percentage=percentage, message=message),
            duration_minutes=job.duration_minutes,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


class LectureDetail(LectureSummary):
    duration_seconds: int
    raw_transcript: Optional[str] = None
    filtered_transcript: Optional[str] = None
    summary: Optional[str] = None
    notes: Optional[str] = None
    qna: Optional[str] = None
    error_message: Optional[str] = None
    processing_started_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: Job) -> "LectureDetail":
        base = LectureSummary.from_job(job)
        return cls(
            **base.model_dump(),
            duration_seconds=job.duration_seconds,
            raw_transcript=job.raw_transcript,
            filtered_transcript=job.filtered_transcript,
            summary=job.summary,
            notes=job.notes,
            qna=job.qna,
            error_message=job.error_message,
            processing_started_at=job.processing_started_at,
            processing_completed_at=job.processing_completed_at,
        )


class LectureAccepted(BaseModel):
    id: str
    title: str
    status: JobStatus
    message: str
    estimated_time: str


class LectureStatus(BaseModel):
    id: str
    title: str
    status: JobStatus
    progress: Progress
    duration_minutes: int
    created_at: Optional[datetime] = None
    processing_started_at: Optional[datetime] = None
    processing_completed_at: Optional[datetime] = None

    @classmethod
    def from_view(cls, view: StatusView) -> "LectureStatus":
        return cls(
            id=view.id,
            title=view.title,
            status=view.status,
            progress=Progress(percentage=view.progress_percentage, message=view.progress_message),
            duration_minutes=view.duration_minutes,
            created_at=view.created_at,
            processing_started_at=view.processing_started_at,
            processing_completed_at=view.processing_completed_at,
        )


class LectureUpdate(BaseModel):
    title: Optional[str] = None
    notes: Optional[str] = None


class LectureMerge(BaseModel):
    title: Optional[str] = None
    lecture_ids: List[str] = Field(min_length=1)
