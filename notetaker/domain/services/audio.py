import asyncio
import logging
import math
from pathlib import Path

from notetaker.domain.ports import AudioTools

logger = logging.getLogger(__name__)

DEFAULT_DURATION_SECONDS = 300


async def probe_duration_seconds(
    tools: AudioTools,
    audio_path: Path,
    fallback: int = DEFAULT_DURATION_SECONDS,
) -> int:
    """
    Whole seconds of audio in audio_path.

    Duration only drives strategy selection, so any probe failure falls back
    to a fixed default instead of failing the upload.
    """
    try:
        seconds = await asyncio.to_thread(tools.probe_duration, audio_path)
    except Exception as exc:  # noqa: BLE001 - any probe failure means "unknown"
        logger.warning("Duration probe failed for %s, using %ss: %s", audio_path.name, fallback, exc)
        return fallback
    if seconds is None or not math.isfinite(seconds) or seconds <= 0:
        logger.warning("Duration probe returned %r for %s, using %ss", seconds, audio_path.name, fallback)
        return fallback
    return int(math.floor(seconds))


async def preprocess_or_original(tools: AudioTools, source: Path, destination: Path) -> Path:
    """
    Classroom noise reduction. Returns the original file if ffmpeg fails.
    """
    try:
        await asyncio.to_thread(tools.preprocess_for_classroom, source, destination)
    except Exception as exc:  # noqa: BLE001 - fall back to the raw recording
        logger.warning("Audio preprocessing failed for %s, using original: %s", source.name, exc)
        return source
    logger.info("Audio preprocessed for classroom environment: %s", destination.name)
    return destination
