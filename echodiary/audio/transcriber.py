"""
Speech-to-text through the OpenAI Whisper API.
"""

import asyncio
import io
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

try:
    import openai
    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False

from ..config import DEFAULT_LANGUAGE, DEFAULT_TRANSCRIPTION_MODEL

logger = logging.getLogger(__name__)


class TranscriptionError(Exception):
    """Raised when the transcription service fails."""
    pass


@dataclass
class TranscriptionResult:
    """Transcribed text with metadata."""
    text: str
    language: Optional[str] = None
    duration: Optional[float] = None         # Audio duration in seconds
    processing_time: Optional[float] = None  # Time taken to transcribe


class WhisperTranscriber:
    """
    Whisper API transcriber.

    Args:
        api_key: OpenAI API key
        model: Transcription model name
        language: ISO-639-1 language hint (None lets Whisper detect it)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_TRANSCRIPTION_MODEL,
        language: Optional[str] = DEFAULT_LANGUAGE,
        timeout: float = 60.0
    ):
        self.api_key = api_key
        self.model = model
        self.language = language
        self.timeout = timeout
        self._client = None

    def is_available(self) -> bool:
        return OPENAI_AVAILABLE and bool(self.api_key)

    async def transcribe(self, audio_data: bytes, filename: str = "recording.wav") -> TranscriptionResult:
        """
        Transcribe WAV bytes.

        Args:
            audio_data: Audio file contents
            filename: Name sent with the upload; its extension tells the
                API the container format

        Returns:
            TranscriptionResult with the recognized text.

        Raises:
            ValueError: If audio_data is empty.
            TranscriptionError: If the service is unavailable or fails.
        """
        if not audio_data:
            raise ValueError("Audio data cannot be empty")
        if not self.is_available():
            raise TranscriptionError("Whisper not available (missing OPENAI_API_KEY or openai package)")

        start_time = time.time()
        try:
            loop = asyncio.get_event_loop()
            response = await loop.run_in_executor(
                None,
                self._sync_transcribe,
                audio_data,
                filename,
            )
        except Exception as e:
            raise TranscriptionError(f"Transcription failed: {e}") from e

        processing_time = time.time() - start_time
        text = (getattr(response, "text", None) or "").strip()
        logger.info(f"Transcribed {len(audio_data)} bytes in {processing_time:.2f}s")

        return TranscriptionResult(
            text=text,
            language=getattr(response, "language", None) or self.language,
            duration=getattr(response, "duration", None),
            processing_time=processing_time,
        )

    async def transcribe_file(self, audio_path: Union[str, Path]) -> TranscriptionResult:
        """Transcribe an audio file from disk."""
        path = Path(audio_path)
        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")
        return await self.transcribe(path.read_bytes(), filename=path.name)

    def _sync_transcribe(self, audio_data: bytes, filename: str):
        if not self._client:
            self._client = openai.OpenAI(api_key=self.api_key, timeout=self.timeout)

        audio_file = io.BytesIO(audio_data)
        audio_file.name = filename

        params = {"model": self.model, "file": audio_file}
        if self.language:
            params["language"] = self.language
        return self._client.audio.transcriptions.create(**params)
