"""
Microphone capture using PyAudio.

Records a fixed-length clip from the default input device and returns it
as 16 kHz mono 16-bit WAV bytes, the format Whisper handles best.
"""

import asyncio
import io
import logging
import time
import wave
from pathlib import Path
from typing import Optional, Union

try:
    import pyaudio
    PYAUDIO_AVAILABLE = True
except ImportError:
    PYAUDIO_AVAILABLE = False
    pyaudio = None

logger = logging.getLogger(__name__)

# A bare WAV header is 44 bytes; anything this small holds no speech
MIN_AUDIO_BYTES = 100


class AudioRecorderError(Exception):
    """Base exception for audio recorder errors."""
    pass


class MicrophonePermissionError(AudioRecorderError):
    """Raised when microphone permissions are not granted."""
    pass


class DeviceError(AudioRecorderError):
    """Raised when no audio input devices are available."""
    pass


class AudioRecorder:
    """
    Async recorder that captures from the microphone and returns WAV bytes.

    Args:
        sample_rate: Audio sample rate in Hz (16kHz recommended for Whisper)
        chunk_size: Frames read per buffer
        channels: Number of audio channels (1 for mono)

    Example:
        >>> recorder = AudioRecorder()
        >>> audio_data = await recorder.record(10)
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        channels: int = 1
    ):
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.sample_width = 2  # 16-bit

        self._audio = None
        self._stream = None
        self._is_recording = False
        self._audio_buffer: list[bytes] = []
        self._recording_task: Optional[asyncio.Task] = None

        self._validate_config()

    def _validate_config(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")
        if self.channels not in (1, 2):
            raise ValueError(f"Channels must be 1 or 2, got {self.channels}")

    def is_available(self) -> bool:
        return PYAUDIO_AVAILABLE

    def is_recording(self) -> bool:
        return self._is_recording

    async def record(self, duration_seconds: float) -> bytes:
        """
        Record for a fixed duration.

        Args:
            duration_seconds: Recording length in seconds

        Returns:
            WAV audio data as bytes

        Raises:
            ValueError: If the duration is not positive
            AudioRecorderError: If the microphone cannot be used
        """
        if duration_seconds <= 0:
            raise ValueError(f"Duration must be positive, got {duration_seconds}")

        await self.start_recording()
        try:
            await asyncio.sleep(duration_seconds)
        finally:
            audio_data = await self.stop_recording()
        return audio_data

    async def start_recording(self) -> None:
        """
        Open the default input device and start buffering audio.

        Raises:
            RuntimeError: If already recording
            MicrophonePermissionError: If microphone access is denied
            DeviceError: If no input devices are available
            AudioRecorderError: If audio initialization fails
        """
        if self._is_recording:
            raise RuntimeError("Recording already in progress")
        if not PYAUDIO_AVAILABLE:
            raise AudioRecorderError(
                "PyAudio not available. Install with: pip install 'echodiary[audio]'"
            )

        try:
            self._audio = pyaudio.PyAudio()

            if not self._has_input_devices():
                raise DeviceError("No audio input devices found")

            self._audio_buffer.clear()

            try:
                self._stream = self._audio.open(
                    format=pyaudio.paInt16,
                    channels=self.channels,
                    rate=self.sample_rate,
                    input=True,
                    frames_per_buffer=self.chunk_size,
                )
            except OSError as e:
                if "device" in str(e).lower() or "input" in str(e).lower():
                    raise MicrophonePermissionError(
                        "Microphone access denied. Allow microphone access for your "
                        "terminal in the system privacy settings and try again."
                    ) from e
                raise AudioRecorderError(f"Failed to open audio stream: {e}") from e

            self._is_recording = True
            self._recording_task = asyncio.create_task(self._record_audio_loop())
            logger.info(f"Recording started: {self.sample_rate}Hz, {self.channels} channel(s)")

        except Exception as e:
            await self._cleanup_resources()
            if isinstance(e, (AudioRecorderError, RuntimeError)):
                raise
            raise AudioRecorderError(f"Failed to start recording: {e}") from e

    async def stop_recording(self) -> bytes:
        """
        Stop recording and return the captured WAV data.

        Raises:
            RuntimeError: If not currently recording
        """
        if not self._is_recording:
            raise RuntimeError("Not currently recording")

        self._is_recording = False
        try:
            if self._recording_task:
                await self._recording_task
                self._recording_task = None
        finally:
            await self._cleanup_resources()

        wav_data = self._create_wav_data()
        logger.info(f"Recording stopped: {len(wav_data)} bytes captured")
        return wav_data

    async def _record_audio_loop(self) -> None:
        if not self._stream:
            return

        loop = asyncio.get_event_loop()
        while self._is_recording:
            try:
                data = await loop.run_in_executor(
                    None,
                    lambda: self._stream.read(self.chunk_size, exception_on_overflow=False),
                )
            except Exception as e:
                logger.warning(f"Audio read error: {e}")
                break
            if data:
                self._audio_buffer.append(data)

        logger.debug("Recording loop ended")

    def _create_wav_data(self) -> bytes:
        wav_buffer = io.BytesIO()
        with wave.open(wav_buffer, "wb") as wav_file:
            wav_file.setnchannels(self.channels)
            wav_file.setsampwidth(self.sample_width)
            wav_file.setframerate(self.sample_rate)
            wav_file.writeframes(b"".join(self._audio_buffer))
        return wav_buffer.getvalue()

    def _has_input_devices(self) -> bool:
        try:
            for i in range(self._audio.get_device_count()):
                device_info = self._audio.get_device_info_by_index(i)
                if device_info.get("maxInputChannels", 0) > 0:
                    return True
        except Exception as e:
            logger.warning(f"Error checking input devices: {e}")
        return False

    async def _cleanup_resources(self) -> None:
        try:
            if self._stream:
                if self._stream.is_active():
                    self._stream.stop_stream()
                self._stream.close()
                self._stream = None
            if self._audio:
                self._audio.terminate()
                self._audio = None
        except Exception as e:
            logger.warning(f"Error during cleanup: {e}")


def save_recording(audio_data: bytes, output_dir: Union[str, Path]) -> Path:
    """Write WAV bytes to ``<output_dir>/recording_<unix time>.wav``."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    audio_path = output_dir / f"recording_{int(time.time())}.wav"
    audio_path.write_bytes(audio_data)
    return audio_path
