"""
Contracts the pipeline depends on. Backends implement them structurally;
nothing here is meant to be subclassed.
"""
from pathlib import Path
from typing import Iterable, List, Optional, Protocol

from notetaker.domain.models import Job, JobStatus


class Transcriber(Protocol):
    async def transcribe(self, audio_path: Path) -> str:
        ...


class TextGenerator(Protocol):
    async def complete(
        self,
        system_instructions: str,
        user_text: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        ...


class AudioTools(Protocol):
    """Blocking audio utilities; callers run them in a worker thread."""

    def probe_duration(self, audio_path: Path) -> float:
        ...

    def extract_segment(
        self, source: Path, destination: Path, start_seconds: float, duration_seconds: float
    ) -> None:
        ...

    def preprocess_for_classroom(self, source: Path, destination: Path) -> None:
        ...


class JobRepository(Protocol):
    async def create(self, job: Job) -> Job:
        ...

    async def get(self, job_id: str, owner_id: str) -> Optional[Job]:
        ...

    async def update(self, job_id: str, owner_id: str, **fields) -> Optional[Job]:
        ...

    async def delete(self, job_id: str, owner_id: str) -> bool:
        ...

    async def list_for_owner(self, owner_id: str) -> List[Job]:
        ...

    async def list_by_status(self, statuses: Iterable[JobStatus]) -> List[Job]:
        ...
