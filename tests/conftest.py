from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest

from notetaker.app.container import build_service
from notetaker.config import Settings
from notetaker.domain.errors import AudioToolError
from notetaker.domain.models import Job, JobStatus, utcnow
from notetaker.domain.services import content
from notetaker.domain.services.job_service import LectureService
from notetaker.infrastructure.persistence.in_memory_repo import InMemoryJobRepository

OWNER = "user-1"


class FakeAudioTools:
    """Stands in for ffmpeg: writes small files instead of cutting audio."""

    def __init__(self, duration: Optional[float] = 300.0) -> None:
        self.duration = duration
        self.probe_error: Optional[Exception] = None
        self.failing_segments: Set[int] = set()
        self.preprocess_error: Optional[Exception] = None
        self.segments: List[Tuple[float, float]] = []
        self.preprocessed: List[Path] = []

    def probe_duration(self, audio_path: Path) -> float:
        if self.probe_error is not None:
            raise self.probe_error
        return self.duration

    def extract_segment(self, source: Path, destination: Path, start_seconds: float, duration_seconds: float) -> None:
        index = int(destination.stem.split("_")[-1])
        self.segments.append((start_seconds, duration_seconds))
        if index in self.failing_segments:
            raise AudioToolError(f"cannot cut segment {index}")
        destination.write_bytes(b"segment %d" % index)

    def preprocess_for_classroom(self, source: Path, destination: Path) -> None:
        if self.preprocess_error is not None:
            raise self.preprocess_error
        destination.write_bytes(source.read_bytes())
        self.preprocessed.append(destination)


class FakeTranscriber:
    """
    Chunk files transcribe to "part<index>"; anything else to `text`.
    Later chunks finish first so completion order is reversed.
    """

    def __init__(self, text: str = "the lecture transcript") -> None:
        self.text = text
        self.failing: Set[str] = set()
        self.calls: List[Path] = []
        self.max_in_flight = 0
        self._in_flight = 0

    async def transcribe(self, audio_path: Path) -> str:
        self.calls.append(audio_path)
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            if audio_path.stem.startswith("chunk_"):
                index = int(audio_path.stem.split("_")[-1])
                await asyncio.sleep(0.01 * (10 - index))
                if audio_path.name in self.failing:
                    raise RuntimeError(f"transcription failed for {audio_path.name}")
                return f"part{index}"
            await asyncio.sleep(0)
            if audio_path.name in self.failing:
                raise RuntimeError(f"transcription failed for {audio_path.name}")
            return self.text
        finally:
            self._in_flight -= 1


_KINDS = {
    content.FILTER.system: "filter",
    content.SUMMARY.system: "summary",
    content.NOTES.system: "notes",
    content.QNA.system: "qna",
}


class FakeTextGenerator:
    def __init__(self) -> None:
        self.failing: Dict[str, Exception] = {}
        self.calls: List[Tuple[str, str]] = []
        self.params: Dict[str, Tuple[int, float]] = {}
        self.filter_output: Optional[str] = None
        self.gate: Optional[asyncio.Event] = None

    async def complete(self, system_instructions: str, user_text: str, *, max_tokens: int, temperature: float) -> str:
        kind = _KINDS[system_instructions]
        self.calls.append((kind, user_text))
        self.params[kind] = (max_tokens, temperature)
        if self.gate is not None and kind != "filter":
            await self.gate.wait()
        await asyncio.sleep(0)
        if kind in self.failing:
            raise self.failing[kind]
        if kind == "filter":
            return self.filter_output if self.filter_output is not None else f"filtered {user_text}"
        return f"{kind} of {user_text[:20]}"

    def inputs(self, kind: str) -> List[str]:
        return [text for k, text in self.calls if k == kind]


class RecordingRepository(InMemoryJobRepository):
    """Keeps every status the store has ever held, per lecture."""

    def __init__(self) -> None:
        super().__init__()
        self.history: Dict[str, List[JobStatus]] = {}
        self.fail_updates_with: Optional[Exception] = None
        self.fail_claims_with: Optional[Exception] = None
        self.fail_creates_with: Optional[Exception] = None

    async def create(self, job: Job) -> Job:
        if self.fail_creates_with is not None:
            raise self.fail_creates_with
        created = await super().create(job)
        self.history[job.id] = [created.status]
        return created

    async def update(self, job_id: str, owner_id: str, **changes) -> Optional[Job]:
        if self.fail_updates_with is not None and changes.get("status") == JobStatus.COMPLETED:
            raise self.fail_updates_with
        if self.fail_claims_with is not None and changes.get("status") == JobStatus.PROCESSING:
            raise self.fail_claims_with
        updated = await super().update(job_id, owner_id, **changes)
        if updated is not None:
            self.history[job_id].append(updated.status)
        return updated


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        upload_dir=tmp_path / "uploads",
        chunks_dir=tmp_path / "chunks",
        database_path=tmp_path / "lectures.db",
        persistence_backend="memory",
        max_parallel_transcriptions=2,
        worker_count=1,
        max_upload_mb=1,
    )


@pytest.fixture()
def tools() -> FakeAudioTools:
    return FakeAudioTools()


@pytest.fixture()
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture()
def generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture()
def repository() -> RecordingRepository:
    return RecordingRepository()


@pytest.fixture()
def service(settings, repository, transcriber, generator, tools) -> LectureService:
    return build_service(
        settings,
        repository=repository,
        transcriber=transcriber,
        text_generator=generator,
        tools=tools,
        audio_tools_available=True,
    )


@pytest.fixture()
def upload_audio(settings):
    """Write a fake upload and return its path."""

    def _write(job_id: str = "lecture-1", suffix: str = ".webm") -> Path:
        settings.upload_dir.mkdir(parents=True, exist_ok=True)
        path = settings.upload_dir / f"{job_id}{suffix}"
        path.write_bytes(b"fake audio bytes")
        return path

    return _write


@pytest.fixture()
def make_job(repository, upload_audio):
    """Create an UPLOADED lecture record backed by a fake upload."""

    async def _make(job_id: str = "lecture-1", duration: int = 300, owner_id: str = OWNER) -> Job:
        path = upload_audio(job_id)
        return await repository.create(
            Job(
                id=job_id,
                owner_id=owner_id,
                title="Thermodynamics",
                duration_seconds=duration,
                audio_path=str(path),
                created_at=utcnow(),
            )
        )

    return _make
