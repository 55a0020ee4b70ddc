"""
Local Whisper ASR adapter: transcribe an audio file on this machine
instead of calling the hosted transcription API.
"""
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import List

logger = logging.getLogger(__name__)


@dataclass
class TranscriptSegment:
    """One segment from Whisper with start/end times (seconds) and text."""
    start: float
    end: float
    text: str


def transcribe(model, audio_path: Path) -> List[TranscriptSegment]:
    """
    Run a loaded Whisper model on an audio file and return segments with timestamps.
    """
    result = model.transcribe(str(audio_path), language=None, fp16=False)
    segments: List[TranscriptSegment] = []
    for seg in result.get("segments", []):
        start = float(seg.get("start", 0))
        end = float(seg.get("end", start))
        text = (seg.get("text") or "").strip()
        if text:
            segments.append(TranscriptSegment(start=start, end=end, text=text))
    return segments


class WhisperTranscriber:
    """
    Transcriber backed by openai-whisper. The model is loaded on first use and
    shared; inference runs in a worker thread, one file at a time.
    """

    def __init__(self, model_size: str = "base") -> None:
        self.model_size = model_size
        self._model = None
        self._lock = Lock()

    def _load(self):
        if self._model is None:
            import whisper

            logger.info("Loading whisper model %s", self.model_size)
            self._model = whisper.load_model(self.model_size)
        return self._model

    def _transcribe_blocking(self, audio_path: Path) -> str:
        with self._lock:
            segments = transcribe(self._load(), audio_path)
        return " ".join(seg.text for seg in segments)

    async def transcribe(self, audio_path: Path) -> str:
        return await asyncio.to_thread(self._transcribe_blocking, audio_path)
