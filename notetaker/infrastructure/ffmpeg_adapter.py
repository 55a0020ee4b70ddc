"""
ffmpeg/ffprobe wrappers: duration probing, segment extraction and
classroom noise preprocessing. All calls block; run them off the event loop.
"""
import logging
import shutil
from pathlib import Path

import ffmpeg

from notetaker.domain.errors import AudioToolError

logger = logging.getLogger(__name__)

CLASSROOM_FILTERS = (
    "highpass=f=200",  # rumble, HVAC
    "lowpass=f=8000",  # hiss
    "dynaudnorm",
    "afftdn",
    "volume=1.2",
)


def is_available() -> bool:
    """True when both ffmpeg and ffprobe binaries are on PATH."""
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


def probe_duration(audio_path: Path) -> float:
    """
    Return the container duration in seconds.
    """
    try:
        info = ffmpeg.probe(str(audio_path))
    except ffmpeg.Error as e:
        raise AudioToolError(f"ffprobe failed: {e.stderr.decode(errors='ignore') if e.stderr else e}") from e
    try:
        return float(info["format"]["duration"])
    except (KeyError, TypeError, ValueError) as e:
        raise AudioToolError(f"ffprobe returned no duration for {audio_path.name}") from e


def extract_segment(
    source: Path,
    destination: Path,
    start_seconds: float,
    duration_seconds: float,
) -> None:
    """
    Cut [start, start + duration) out of source into destination.
    """
    try:
        (
            ffmpeg.input(str(source), ss=start_seconds, t=duration_seconds)
            .output(str(destination))
            .overwrite_output()
            .run(quiet=True)
        )
    except ffmpeg.Error as e:
        raise AudioToolError(f"ffmpeg failed to cut segment at {start_seconds}s: {e}") from e
    if not destination.exists():
        raise AudioToolError(f"ffmpeg did not produce {destination.name}")


def preprocess_for_classroom(source: Path, destination: Path) -> None:
    """
    Band-limit, normalize and denoise a classroom recording.
    """
    try:
        (
            ffmpeg.input(str(source))
            .output(
                str(destination),
                af=",".join(CLASSROOM_FILTERS),
                acodec="libopus",
                audio_bitrate="128k",
            )
            .overwrite_output()
            .run(quiet=True)
        )
    except ffmpeg.Error as e:
        raise AudioToolError(f"ffmpeg preprocessing failed: {e}") from e


class FfmpegAudioTools:
    """Groups the module functions behind the AudioTools contract."""

    def probe_duration(self, audio_path: Path) -> float:
        return probe_duration(audio_path)

    def extract_segment(
        self, source: Path, destination: Path, start_seconds: float, duration_seconds: float
    ) -> None:
        extract_segment(source, destination, start_seconds, duration_seconds)

    def preprocess_for_classroom(self, source: Path, destination: Path) -> None:
        preprocess_for_classroom(source, destination)
