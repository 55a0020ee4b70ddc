"""
Turns a lecture transcript into the filtered transcript, summary, notes and Q&A.
Each step is a single text-generation call; nothing here retries.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Tuple

from notetaker.domain.ports import TextGenerator

logger = logging.getLogger(__name__)

_ENGLISH = (
    "Always respond in English, regardless of input language. "
    "Translate any non-English content to English while preserving meaning."
)


@dataclass(frozen=True)
class Instruction:
    system: str
    max_tokens: int
    temperature: float


FILTER = Instruction(
    system=(
        "You are a content filter for educational recordings. Keep only the "
        "instructor's teaching content: explanations, definitions, examples and "
        "key concepts, in the order they were presented. Remove student side "
        "conversations, background chatter, interruptions, filler words and "
        f"repetitions. {_ENGLISH} Return only the filtered content."
    ),
    max_tokens=4000,
    temperature=0.2,
)

SUMMARY = Instruction(
    system=(
        "You write educational summaries. Summarize the lecture around its main "
        "concepts and learning objectives, grouped by topic, in the order taught. "
        f"{_ENGLISH}"
    ),
    max_tokens=500,
    temperature=0.3,
)

NOTES = Instruction(
    system=(
        "You are an educational note-taker. Write study notes with numbered "
        "sections for the main topics; under each give the key concept with a "
        "clear definition, the important details and any examples. Plain text, "
        f"no markdown symbols. {_ENGLISH}"
    ),
    max_tokens=800,
    temperature=0.3,
)

QNA = Instruction(
    system=(
        "You are an educator writing study questions. Write 5-10 questions with "
        "answers that test understanding of the lecture's key concepts, mixing "
        "factual and analytical questions. Format each as 'Q: ...' followed by "
        f"'A: ...'. {_ENGLISH}"
    ),
    max_tokens=600,
    temperature=0.3,
)


class LectureContentGenerator:
    def __init__(self, generator: TextGenerator) -> None:
        self.generator = generator

    async def _run(self, instruction: Instruction, text: str) -> str:
        return await self.generator.complete(
            instruction.system,
            text,
            max_tokens=instruction.max_tokens,
            temperature=instruction.temperature,
        )

    async def filter_transcript(self, transcript: str) -> str:
        logger.info("Applying classroom content filtering")
        return await self._run(FILTER, transcript)

    async def summarize(self, text: str) -> str:
        return await self._run(SUMMARY, text)

    async def write_notes(self, text: str) -> str:
        return await self._run(NOTES, text)

    async def write_qna(self, text: str) -> str:
        return await self._run(QNA, text)

    async def generate_all(self, text: str) -> Tuple[str, str, str]:
        """
        (summary, notes, qna), generated concurrently. Any failure fails the
        whole set; the remaining calls are cancelled.
        """
        tasks = [
            asyncio.ensure_future(self.summarize(text)),
            asyncio.ensure_future(self.write_notes(text)),
            asyncio.ensure_future(self.write_qna(text)),
        ]
        try:
            summary, notes, qna = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        logger.info("Summary, notes and Q&A generated")
        return summary, notes, qna
