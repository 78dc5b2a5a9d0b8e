"""
Image generation through Google Gemini image models.

ImageClient wraps the google-genai SDK with error classification and
retries. generate_image() is the entry point used by the CLI: it runs the
client and writes the returned image to disk.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

try:
    from google import genai
    from google.genai import types
    GENAI_AVAILABLE = True
except ImportError:
    GENAI_AVAILABLE = False
    genai = None
    types = None

from ..config import DEFAULT_IMAGE_MODEL
from .errors import ApiError, classify_error
from .retry import RetryPolicy, SleepFunc, call_with_retry

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}


@dataclass(frozen=True)
class ImageClientConfig:
    """
    Image client settings, fully resolved at construction.

    Args:
        api_key: Gemini API key
        model: Image model identifier
        max_retries: Additional attempts for retryable failures
        retry_delay_ms: Initial backoff delay in milliseconds
        timeout_ms: Per-request timeout handed to the HTTP transport
        enable_logging: Log every attempt (debug) instead of errors only
    """
    api_key: str
    model: str = DEFAULT_IMAGE_MODEL
    max_retries: int = 3
    retry_delay_ms: int = 1000
    timeout_ms: int = 30000
    enable_logging: bool = True

    def __post_init__(self):
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        # Raises on bad retry settings
        RetryPolicy(max_retries=self.max_retries, retry_delay_ms=self.retry_delay_ms)

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            retry_delay_ms=self.retry_delay_ms,
            log_level=logging.DEBUG if self.enable_logging else logging.ERROR,
        )


@dataclass
class ImageResponse:
    """Outcome of one image generation request."""
    success: bool
    image_data: Optional[bytes] = None
    mime_type: str = "image/png"
    error_message: Optional[str] = None
    model: Optional[str] = None


@dataclass
class GenerateImageResult:
    """A generated image saved to disk."""
    image_path: Path
    prompt: str
    timestamp: datetime
    model_used: str
    generation_time_ms: int


class ImageClient:
    """
    Gemini image generation client with retry logic.

    Failures are classified into ApiError kinds at the SDK boundary;
    rate limits and network errors are retried with exponential backoff.

    Args:
        config: Resolved client settings
        sleep: Awaitable sleep used between retries (``asyncio.sleep``)
    """

    def __init__(self, config: ImageClientConfig, sleep: Optional[SleepFunc] = None):
        self.config = config
        self._sleep = sleep
        self._client = None

    def is_available(self) -> bool:
        """Check that the SDK is installed and a key is configured."""
        return GENAI_AVAILABLE and bool(self.config.api_key)

    async def generate_image(self, prompt: str, aspect_ratio: str = "4:3") -> ImageResponse:
        """
        Generate an image, retrying transient failures.

        Args:
            prompt: Full image prompt
            aspect_ratio: Requested aspect ratio ("1:1", "4:3", "16:9")

        Returns:
            A successful ImageResponse carrying image bytes.

        Raises:
            ApiError: When the request fails for good. A response without
                image data counts as a non-retryable request error.
        """
        if self.config.enable_logging:
            logger.info(f"Generating image with prompt: {prompt!r}")

        async def attempt() -> ImageResponse:
            response = await self._call_api(prompt, aspect_ratio)
            if response.success and response.image_data:
                return response
            raise ApiError.request(
                response.error_message or "API returned unsuccessful response"
            )

        return await call_with_retry(
            attempt,
            self.config.retry_policy,
            sleep=self._sleep,
            description=f"Image generation ({self.config.model})",
        )

    async def _call_api(self, prompt: str, aspect_ratio: str) -> ImageResponse:
        """Run one blocking SDK request in the executor and classify failures."""
        try:
            loop = asyncio.get_event_loop()
            return await loop.run_in_executor(
                None,
                self._sync_call_api,
                prompt,
                aspect_ratio,
            )
        except ApiError:
            raise
        except Exception as e:
            raise classify_error(e) from e

    def _get_client(self):
        if not GENAI_AVAILABLE:
            raise ApiError.request(
                "google-genai not available. Install with: pip install google-genai"
            )
        if not self.config.api_key:
            raise ApiError.auth("GEMINI_API_KEY is not set")
        if self._client is None:
            self._client = genai.Client(
                api_key=self.config.api_key,
                http_options=types.HttpOptions(timeout=self.config.timeout_ms),
            )
        return self._client

    def _sync_call_api(self, prompt: str, aspect_ratio: str) -> ImageResponse:
        client = self._get_client()
        logger.debug(f"Calling Gemini API with model: {self.config.model}")

        response = client.models.generate_content(
            model=self.config.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_modalities=["TEXT", "IMAGE"],
                image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
            ),
        )
        return self._parse_response(response)

    def _parse_response(self, response) -> ImageResponse:
        texts = []
        for part in getattr(response, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and getattr(inline, "data", None):
                return ImageResponse(
                    success=True,
                    image_data=inline.data,
                    mime_type=getattr(inline, "mime_type", None) or "image/png",
                    model=self.config.model,
                )
            text = getattr(part, "text", None)
            if isinstance(text, str) and text.strip():
                texts.append(text.strip())

        message = "No image data in response"
        if texts:
            message += f": {' '.join(texts)[:200]}"
        return ImageResponse(success=False, error_message=message, model=self.config.model)


def save_image(image_data: bytes, output_dir: Union[str, Path], mime_type: str = "image/png") -> Path:
    """Write image bytes to ``<output_dir>/<ms timestamp><ext>``."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    extension = IMAGE_EXTENSIONS.get(mime_type, ".png")
    image_path = output_dir / f"{int(time.time() * 1000)}{extension}"
    image_path.write_bytes(image_data)
    logger.info(f"Saved generated image to {image_path}")
    return image_path


async def generate_image(
    prompt: str,
    config: ImageClientConfig,
    output_dir: Union[str, Path],
    aspect_ratio: str = "4:3",
    sleep: Optional[SleepFunc] = None,
) -> GenerateImageResult:
    """
    Generate an illustration and save it.

    Args:
        prompt: Full image prompt
        config: Client settings
        output_dir: Directory for the image file
        aspect_ratio: Requested aspect ratio
        sleep: Backoff sleep override (tests)

    Returns:
        GenerateImageResult with the saved path and timing.

    Raises:
        ApiError: If the key is missing or generation fails.
    """
    if not config.api_key:
        raise ApiError.auth("GEMINI_API_KEY is not set")

    start_time = time.time()
    client = ImageClient(config, sleep=sleep)
    response = await client.generate_image(prompt, aspect_ratio=aspect_ratio)
    generation_time_ms = int((time.time() - start_time) * 1000)

    image_path = save_image(response.image_data, output_dir, response.mime_type)

    return GenerateImageResult(
        image_path=image_path,
        prompt=prompt,
        timestamp=datetime.now(),
        model_used=response.model or "unknown",
        generation_time_ms=generation_time_ms,
    )
