import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from notetaker.config import Settings
from notetaker.domain.models import Job, JobStatus, StatusView, utcnow
from notetaker.domain.ports import AudioTools, JobRepository
from notetaker.domain.services.audio import probe_duration_seconds
from notetaker.domain.services.chunking import truncate_words
from notetaker.domain.services.job_queue import JobQueue
from notetaker.domain.services.pipeline import LecturePipeline, stage
from notetaker.infrastructure.audio_store import LocalAudioStore

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Lecture"
INTERRUPTED_MESSAGE = "Processing was interrupted and the audio is no longer available"
MERGE_SEPARATOR = "\n\n"


class LectureStateError(Exception):
    """The requested change is not allowed in the lecture's current status."""


@dataclass
class IngestResult:
    job: Job
    background: bool

    @property
    def estimated_minutes(self) -> int:
        return self.job.duration_minutes * 2


class LectureService:
    def __init__(
        self,
        repository: JobRepository,
        audio_store: LocalAudioStore,
        pipeline: LecturePipeline,
        queue: JobQueue,
        tools: AudioTools,
        settings: Settings,
    ) -> None:
        self.repository = repository
        self.audio_store = audio_store
        self.pipeline = pipeline
        self.queue = queue
        self.tools = tools
        self.settings = settings

    async def ingest(
        self,
        job_id: str,
        owner_id: str,
        title: Optional[str],
        audio_path: Path,
    ) -> IngestResult:
        """
        Register an uploaded recording and pick a strategy by duration:
        long lectures are claimed and queued, short ones are processed inline.
        """
        duration = await probe_duration_seconds(
            self.tools, audio_path, fallback=self.settings.fallback_duration_seconds
        )
        logger.info("Audio duration for %s: %d minutes", job_id, duration // 60)

        try:
            job = await self.repository.create(
                Job(
                    id=job_id,
                    owner_id=owner_id,
                    title=(title or "").strip() or DEFAULT_TITLE,
                    duration_seconds=duration,
                    status=JobStatus.UPLOADED,
                    audio_path=str(audio_path),
                    created_at=utcnow(),
                )
            )
        except Exception:
            logger.exception("Could not register lecture %s", job_id)
            self.audio_store.delete(audio_path)
            raise

        try:
            if duration > self.settings.background_threshold_seconds:
                logger.info("Long lecture %s: processing in background", job_id)
                claimed = await self.pipeline.claim(job)
                if claimed is not None:
                    await self.queue.submit(claimed)
                return IngestResult(job=claimed or job, background=True)

            logger.info("Short lecture %s: processing immediately", job_id)
            finished = await self.pipeline.process(job)
            return IngestResult(job=finished or job, background=False)
        except Exception:
            # nothing was processed: drop both the audio and its record
            logger.exception("Could not start processing for lecture %s", job_id)
            self.audio_store.delete(audio_path)
            await self._forget(job)
            raise

    async def _forget(self, job: Job) -> None:
        try:
            await self.repository.delete(job.id, job.owner_id)
        except Exception:
            logger.exception("Failed to remove record for lecture %s", job.id)

    async def get_lecture(self, job_id: str, owner_id: str) -> Optional[Job]:
        return await self.repository.get(job_id, owner_id)

    async def list_lectures(self, owner_id: str) -> List[Job]:
        return await self.repository.list_for_owner(owner_id)

    async def get_status(self, job_id: str, owner_id: str) -> Optional[StatusView]:
        job = await self.repository.get(job_id, owner_id)
        return StatusView.from_job(job) if job else None

    async def update_lecture(
        self,
        job_id: str,
        owner_id: str,
        *,
        title: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Optional[Job]:
        job = await self.repository.get(job_id, owner_id)
        if job is None:
            return None
        changes = {}
        if title is not None:
            if not title.strip():
                raise ValueError("Title cannot be empty")
            changes["title"] = title.strip()
        if notes is not None:
            if job.status != JobStatus.COMPLETED:
                raise LectureStateError(f"Notes can only be edited once processing has completed (status={job.status.value})")
            changes["notes"] = notes
        if not changes:
            return job
        return await self.repository.update(job_id, owner_id, **changes)

    async def delete_lecture(self, job_id: str, owner_id: str) -> bool:
        job = await self.repository.get(job_id, owner_id)
        if job is None:
            return False
        deleted = await self.repository.delete(job_id, owner_id)
        # a lecture still being processed keeps its audio until the pipeline finishes
        if deleted and job.audio_path and job.status == JobStatus.UPLOADED:
            self.audio_store.delete(Path(job.audio_path))
        return deleted

    async def merge_lectures(
        self,
        owner_id: str,
        title: Optional[str],
        lecture_ids: List[str],
    ) -> Optional[Job]:
        """
        Combine the completed parts of one long recording into a new lecture.

        Transcripts are joined in the order given and summary, notes and Q&A
        are generated from the joined text. The parts are left as they are.
        Returns None if any part does not exist for this owner.
        """
        if not lecture_ids:
            raise ValueError("At least one lecture is required")
        if len(set(lecture_ids)) != len(lecture_ids):
            raise ValueError("Each lecture can only be merged once")

        parts: List[Job] = []
        for lecture_id in lecture_ids:
            part = await self.repository.get(lecture_id, owner_id)
            if part is None:
                return None
            if part.status != JobStatus.COMPLETED:
                raise LectureStateError(
                    f"Lecture {lecture_id} has not finished processing (status={part.status.value})"
                )
            parts.append(part)

        logger.info("Merging %d lectures for %s", len(parts), owner_id)
        raw = MERGE_SEPARATOR.join(p.raw_transcript or "" for p in parts)
        filtered = MERGE_SEPARATOR.join(p.filtered_transcript or "" for p in parts)
        started = utcnow()
        with stage("generation"):
            summary, notes, qna = await self.pipeline.content.generate_all(
                truncate_words(filtered, self.settings.max_words)
            )

        merged = await self.repository.create(
            Job(
                id=str(uuid.uuid4()),
                owner_id=owner_id,
                title=(title or "").strip() or DEFAULT_TITLE,
                duration_seconds=sum(p.duration_seconds for p in parts),
                status=JobStatus.COMPLETED,
                raw_transcript=raw,
                filtered_transcript=filtered,
                summary=summary,
                notes=notes,
                qna=qna,
                created_at=started,
                processing_started_at=started,
                processing_completed_at=utcnow(),
            )
        )
        logger.info("Merged lecture %s saved", merged.id)
        return merged

    async def recover(self) -> int:
        """
        Re-queue lectures left UPLOADED or PROCESSING by a previous process.
        Lectures whose audio is gone are failed instead. Returns the number requeued.
        """
        stranded = await self.repository.list_by_status([JobStatus.UPLOADED, JobStatus.PROCESSING])
        requeued = 0
        for job in stranded:
            if job.audio_path and Path(job.audio_path).exists():
                claimed = await self.pipeline.claim(job)
                if claimed is not None:
                    await self.queue.submit(claimed)
                    requeued += 1
                continue
            logger.warning("Lecture %s cannot be recovered: audio missing", job.id)
            if job.status == JobStatus.UPLOADED:
                job = await self.pipeline.claim(job)
                if job is None:
                    continue
            await self.pipeline.fail(job, INTERRUPTED_MESSAGE)
        if stranded:
            logger.info("Recovered %d of %d stranded lectures", requeued, len(stranded))
        return requeued
