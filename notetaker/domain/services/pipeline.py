"""
Lecture processing pipeline.

Drives one lecture from uploaded audio to finished artifacts:

    claim -> transcribe (single file or chunked) -> filter -> truncate
          -> summary / notes / Q&A in parallel -> persist -> cleanup

Every status change is written and awaited before the next stage starts,
so a concurrent status poll only ever sees the lifecycle move forward.
"""
import asyncio
import logging
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from notetaker.config import Settings
from notetaker.domain.errors import InvalidTransitionError, PipelineError
from notetaker.domain.models import Job, JobStatus, utcnow
from notetaker.domain.ports import AudioTools, JobRepository, Transcriber
from notetaker.domain.services.audio import preprocess_or_original
from notetaker.domain.services.chunking import (
    needs_chunking,
    plan_chunks,
    reassemble,
    split_audio,
    transcribe_chunks,
    truncate_words,
)
from notetaker.domain.services.content import LectureContentGenerator
from notetaker.infrastructure.audio_store import LocalAudioStore

logger = logging.getLogger(__name__)


@contextmanager
def stage(name: str):
    """Re-raise anything escaping the block as a PipelineError for that stage."""
    try:
        yield
    except PipelineError:
        raise
    except Exception as exc:
        raise PipelineError(name, str(exc) or exc.__class__.__name__) from exc


class LecturePipeline:
    def __init__(
        self,
        repository: JobRepository,
        audio_store: LocalAudioStore,
        transcriber: Transcriber,
        content: LectureContentGenerator,
        tools: AudioTools,
        settings: Settings,
        *,
        audio_tools_available: bool,
    ) -> None:
        self.repository = repository
        self.audio_store = audio_store
        self.transcriber = transcriber
        self.content = content
        self.tools = tools
        self.settings = settings
        self.audio_tools_available = audio_tools_available

    async def _write(self, job: Job, target: JobStatus, **changes) -> Optional[Job]:
        if not job.status.can_transition_to(target):
            raise InvalidTransitionError(job.id, job.status, target)
        return await self.repository.update(job.id, job.owner_id, status=target, **changes)

    async def claim(self, job: Job) -> Optional[Job]:
        """
        Move a lecture to PROCESSING. Returns None if the record is gone.
        """
        current = await self.repository.get(job.id, job.owner_id)
        if current is None:
            logger.warning("Lecture %s no longer exists, nothing to claim", job.id)
            return None
        claimed = await self._write(current, JobStatus.PROCESSING, processing_started_at=utcnow())
        if claimed is not None:
            logger.info("Processing started for lecture %s (%ds)", job.id, job.duration_seconds)
        return claimed

    async def process(self, job: Job) -> Optional[Job]:
        """Claim and run to a terminal status in the caller's task."""
        claimed = await self.claim(job)
        if claimed is None:
            return None
        return await self.execute(claimed)

    async def execute(self, job: Job) -> Optional[Job]:
        """
        Run every stage for a claimed lecture and persist the terminal status.

        Returns the terminal record, or None if the owner deleted the lecture
        while it was queued or being processed.
        """
        transient: List[Path] = []
        try:
            result = await self._run_stages(job, transient)
        except asyncio.CancelledError:
            # shutdown: keep the upload so the lecture can be recovered
            self._discard(transient)
            raise
        except Exception as exc:
            logger.exception("Processing failed for lecture %s", job.id)
            result = await self._record_failure(job, exc)
        self._discard(transient)
        self._remove_upload(job)
        return result

    async def _run_stages(self, job: Job, transient: List[Path]) -> Optional[Job]:
        # a queued lecture may have been deleted while it waited
        if await self.repository.get(job.id, job.owner_id) is None:
            logger.info("Lecture %s was deleted before processing started", job.id)
            return None
        if not job.audio_path or not Path(job.audio_path).exists():
            raise PipelineError("transcription", "Audio file is missing")
        audio_path = Path(job.audio_path)

        raw = await self._transcribe(job, audio_path, transient)
        if not raw.strip():
            raise PipelineError("transcription", "No speech could be transcribed")
        logger.info("Transcription completed for lecture %s", job.id)

        with stage("filtering"):
            filtered = await self.content.filter_transcript(raw)

        budgeted = truncate_words(filtered, self.settings.max_words)

        with stage("generation"):
            summary, notes, qna = await self.content.generate_all(budgeted)

        with stage("persistence"):
            completed = await self._write(
                job,
                JobStatus.COMPLETED,
                raw_transcript=raw,
                filtered_transcript=filtered,
                summary=summary,
                notes=notes,
                qna=qna,
                error_message=None,
                audio_path=None,
                processing_completed_at=utcnow(),
            )
        if completed is None:
            logger.warning("Lecture %s was deleted during processing; results discarded", job.id)
        else:
            logger.info("Lecture %s processing completed and saved", job.id)
        return completed

    async def fail(self, job: Job, message: str) -> Optional[Job]:
        """Write the FAILED terminal status. Artifacts are never written here."""
        return await self._write(
            job,
            JobStatus.FAILED,
            error_message=message,
            audio_path=None,
            processing_completed_at=utcnow(),
        )

    async def _record_failure(self, job: Job, exc: Exception) -> Optional[Job]:
        message = str(exc) or exc.__class__.__name__
        try:
            return await self.fail(job, message)
        except Exception:
            # the record stays at its last persisted status
            logger.exception("Failed to record failure for lecture %s", job.id)
            return replace(job, status=JobStatus.FAILED, error_message=message)

    async def _transcribe(self, job: Job, audio_path: Path, transient: List[Path]) -> str:
        window = self.settings.chunk_window_seconds
        if needs_chunking(job.duration_seconds, window):
            if self.audio_tools_available:
                return await self._transcribe_chunked(job, audio_path)
            logger.warning("ffmpeg unavailable; transcribing %s as a single file", job.id)

        source = audio_path
        if (
            self.audio_tools_available
            and self.settings.preprocess_audio
            and job.duration_seconds > self.settings.preprocess_min_seconds
        ):
            target = self.audio_store.preprocessed_path(audio_path)
            transient.append(target)
            source = await preprocess_or_original(self.tools, audio_path, target)

        with stage("transcription"):
            return await self.transcriber.transcribe(source)

    async def _transcribe_chunked(self, job: Job, audio_path: Path) -> str:
        limit = self.settings.max_parallel_transcriptions
        planned = plan_chunks(job.duration_seconds, self.settings.chunk_window_seconds)
        logger.info("Long lecture %s: splitting into %d chunks", job.id, len(planned))
        try:
            chunk_dir = self.audio_store.chunk_dir(job.id)
            chunks = await split_audio(self.tools, audio_path, chunk_dir, planned, limit)
            results = await transcribe_chunks(self.transcriber, chunks, limit)
            with stage("reassembly"):
                return reassemble(results)
        finally:
            self.audio_store.remove_chunk_dir(job.id)

    def _discard(self, paths: List[Path]) -> None:
        for path in paths:
            self.audio_store.delete(path)

    def _remove_upload(self, job: Job) -> None:
        if job.audio_path:
            self.audio_store.delete(Path(job.audio_path))
