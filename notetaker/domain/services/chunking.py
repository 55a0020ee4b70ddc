"""
Time-based chunking of long lectures and reassembly of chunk transcripts.

Chunks are cut and transcribed concurrently; results are put back in
sequence order before anything downstream sees them.
"""
import asyncio
import logging
import math
from pathlib import Path
from typing import Iterable, List

from notetaker.domain.models import Chunk, ChunkTranscript
from notetaker.domain.ports import AudioTools, Transcriber

logger = logging.getLogger(__name__)

CHUNK_WINDOW_SECONDS = 600
MAX_WORDS = 2000


def needs_chunking(duration_seconds: float, window_seconds: int = CHUNK_WINDOW_SECONDS) -> bool:
    return duration_seconds > window_seconds


def plan_chunks(duration_seconds: float, window_seconds: int = CHUNK_WINDOW_SECONDS) -> List[Chunk]:
    """
    ceil(duration / window) chunks; the last one covers only the remainder.
    """
    if window_seconds <= 0:
        raise ValueError("window_seconds must be positive")
    if duration_seconds <= 0:
        return []
    total = math.ceil(duration_seconds / window_seconds)
    chunks = []
    for i in range(total):
        offset = i * window_seconds
        chunks.append(
            Chunk(
                sequence_index=i,
                source_offset_seconds=offset,
                source_duration_seconds=min(window_seconds, duration_seconds - offset),
            )
        )
    return chunks


async def split_audio(
    tools: AudioTools,
    source: Path,
    chunk_dir: Path,
    chunks: List[Chunk],
    limit: int = 4,
) -> List[Chunk]:
    """
    Cut every planned chunk out of source. A chunk that fails to cut comes
    back with path=None; this never raises for a single bad segment.
    """
    semaphore = asyncio.Semaphore(max(1, limit))
    suffix = source.suffix or ".webm"

    async def cut(chunk: Chunk) -> Chunk:
        destination = chunk_dir / f"chunk_{chunk.sequence_index:03d}{suffix}"
        async with semaphore:
            try:
                await asyncio.to_thread(
                    tools.extract_segment,
                    source,
                    destination,
                    chunk.source_offset_seconds,
                    chunk.source_duration_seconds,
                )
            except Exception as exc:  # noqa: BLE001 - one bad segment must not sink the lecture
                logger.warning("Chunk %d creation failed: %s", chunk.sequence_index, exc)
                return Chunk(chunk.sequence_index, chunk.source_offset_seconds, chunk.source_duration_seconds, None)
        return Chunk(chunk.sequence_index, chunk.source_offset_seconds, chunk.source_duration_seconds, destination)

    results = await asyncio.gather(*(cut(c) for c in chunks))
    created = sum(1 for c in results if c.path is not None)
    logger.info("Created %d of %d chunks in %s", created, len(chunks), chunk_dir)
    return list(results)


async def transcribe_chunks(
    transcriber: Transcriber,
    chunks: List[Chunk],
    limit: int = 4,
) -> List[ChunkTranscript]:
    """
    Transcribe every chunk that has a file. Missing files and failed calls
    contribute an empty transcript. Results are in completion order.
    """
    semaphore = asyncio.Semaphore(max(1, limit))
    results: List[ChunkTranscript] = []

    async def run(chunk: Chunk) -> None:
        if chunk.path is None:
            logger.warning("Skipping chunk %d (creation failed)", chunk.sequence_index)
            results.append(ChunkTranscript(chunk.sequence_index, ""))
            return
        async with semaphore:
            try:
                text = await transcriber.transcribe(chunk.path)
            except Exception as exc:  # noqa: BLE001 - isolate per-chunk failures
                logger.error("Error transcribing chunk %d: %s", chunk.sequence_index, exc)
                text = ""
        logger.info("Chunk %d/%d transcribed", chunk.sequence_index + 1, len(chunks))
        results.append(ChunkTranscript(chunk.sequence_index, text))

    await asyncio.gather(*(run(c) for c in chunks))
    return results


def reassemble(results: Iterable[ChunkTranscript]) -> str:
    """
    Join chunk texts in sequence order with a single space. Empty chunks
    still take their slot.
    """
    ordered = sorted(results, key=lambda r: r.sequence_index)
    return " ".join(r.text for r in ordered)


def truncate_words(text: str, max_words: int = MAX_WORDS) -> str:
    """
    Keep the first max_words whitespace-separated words. Text within the
    budget is returned untouched.
    """
    words = text.split()
    if len(words) <= max_words:
        return text
    logger.info("Truncating content from %d to %d words", len(words), max_words)
    return " ".join(words[:max_words])
