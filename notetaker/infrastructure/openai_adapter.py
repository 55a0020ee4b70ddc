"""
Hosted speech-to-text and text generation through the OpenAI API.
"""
import logging
from pathlib import Path
from typing import Optional

from openai import AsyncOpenAI

from notetaker.domain.errors import GenerationError

logger = logging.getLogger(__name__)


def build_client(api_key: Optional[str], timeout: float) -> AsyncOpenAI:
    # max_retries=0: calls fail fast, the job records the error
    return AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)


class OpenAITranscriber:
    def __init__(self, client: AsyncOpenAI, model: str = "whisper-1") -> None:
        self.client = client
        self.model = model

    async def transcribe(self, audio_path: Path) -> str:
        result = await self.client.audio.transcriptions.create(
            model=self.model,
            file=audio_path,
        )
        return result.text or ""


class OpenAITextGenerator:
    def __init__(self, client: AsyncOpenAI, model: str) -> None:
        self.client = client
        self.model = model

    async def complete(
        self,
        system_instructions: str,
        user_text: str,
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_instructions},
                {"role": "user", "content": user_text},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        if not response.choices or response.choices[0].message.content is None:
            raise GenerationError("generation", f"{self.model} returned no content")
        return response.choices[0].message.content
