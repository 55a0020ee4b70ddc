"""
Builds the service graph from settings. Tests pass their own collaborators.
"""
import logging
from typing import Optional

from notetaker.config import Settings
from notetaker.domain.ports import AudioTools, JobRepository, TextGenerator, Transcriber
from notetaker.domain.services.content import LectureContentGenerator
from notetaker.domain.services.job_queue import JobQueue
from notetaker.domain.services.job_service import LectureService
from notetaker.domain.services.pipeline import LecturePipeline
from notetaker.infrastructure import ffmpeg_adapter
from notetaker.infrastructure.audio_store import LocalAudioStore
from notetaker.infrastructure.persistence.factory import build_repository

logger = logging.getLogger(__name__)


def build_transcriber(settings: Settings) -> Transcriber:
    if settings.transcription_backend == "whisper":
        from notetaker.infrastructure.whisper_adapter import WhisperTranscriber

        return WhisperTranscriber(settings.whisper_model)

    from notetaker.infrastructure.openai_adapter import OpenAITranscriber, build_client

    client = build_client(settings.openai_api_key, settings.request_timeout_seconds)
    return OpenAITranscriber(client, settings.transcription_model)


def build_text_generator(settings: Settings) -> TextGenerator:
    from notetaker.infrastructure.openai_adapter import OpenAITextGenerator, build_client

    client = build_client(settings.openai_api_key, settings.request_timeout_seconds)
    return OpenAITextGenerator(client, settings.chat_model)


def build_service(
    settings: Settings,
    *,
    repository: Optional[JobRepository] = None,
    transcriber: Optional[Transcriber] = None,
    text_generator: Optional[TextGenerator] = None,
    tools: Optional[AudioTools] = None,
    audio_tools_available: Optional[bool] = None,
) -> LectureService:
    if audio_tools_available is None:
        audio_tools_available = ffmpeg_adapter.is_available()
    if audio_tools_available:
        logger.info("FFmpeg is available for audio preprocessing and chunking")
    else:
        logger.warning("FFmpeg not available: no preprocessing, long lectures are not chunked")

    repository = repository or build_repository(settings)
    audio_store = LocalAudioStore(settings.upload_dir, settings.chunks_dir)
    tools = tools or ffmpeg_adapter.FfmpegAudioTools()
    pipeline = LecturePipeline(
        repository,
        audio_store,
        transcriber or build_transcriber(settings),
        LectureContentGenerator(text_generator or build_text_generator(settings)),
        tools,
        settings,
        audio_tools_available=audio_tools_available,
    )
    queue = JobQueue(pipeline, workers=settings.worker_count)
    return LectureService(repository, audio_store, pipeline, queue, tools, settings)
