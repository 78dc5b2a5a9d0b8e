"""
Tests for microphone capture and Whisper transcription.
"""

import io
import wave
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from echodiary.audio.recorder import (
    AudioRecorder,
    AudioRecorderError,
    DeviceError,
    save_recording,
)
from echodiary.audio.transcriber import (
    TranscriptionError,
    TranscriptionResult,
    WhisperTranscriber,
)


@pytest.fixture
def mock_pyaudio():
    """PyAudio with one input device whose stream yields silence."""
    stream = MagicMock()
    stream.read.return_value = b"\x00\x00" * 1024
    stream.is_active.return_value = True

    audio = MagicMock()
    audio.get_device_count.return_value = 1
    audio.get_device_info_by_index.return_value = {"maxInputChannels": 1}
    audio.open.return_value = stream

    module = MagicMock()
    module.PyAudio.return_value = audio

    with (
        patch("echodiary.audio.recorder.PYAUDIO_AVAILABLE", True),
        patch("echodiary.audio.recorder.pyaudio", module),
    ):
        yield SimpleNamespace(module=module, audio=audio, stream=stream)


class TestAudioRecorder:
    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            AudioRecorder(sample_rate=0)
        with pytest.raises(ValueError):
            AudioRecorder(channels=3)

    @pytest.mark.asyncio
    async def test_duration_must_be_positive(self):
        with pytest.raises(ValueError):
            await AudioRecorder().record(0)

    @pytest.mark.asyncio
    async def test_missing_pyaudio(self):
        with patch("echodiary.audio.recorder.PYAUDIO_AVAILABLE", False):
            with pytest.raises(AudioRecorderError, match="PyAudio"):
                await AudioRecorder().record(1)

    @pytest.mark.asyncio
    async def test_record_returns_wav(self, mock_pyaudio):
        recorder = AudioRecorder()

        data = await recorder.record(0.05)

        with wave.open(io.BytesIO(data), "rb") as wav_file:
            assert wav_file.getnchannels() == 1
            assert wav_file.getframerate() == 16000
            assert wav_file.getsampwidth() == 2
            assert wav_file.getnframes() > 0
        assert recorder.is_recording() is False
        mock_pyaudio.stream.close.assert_called_once()
        mock_pyaudio.audio.terminate.assert_called_once()

    @pytest.mark.asyncio
    async def test_no_input_devices(self, mock_pyaudio):
        mock_pyaudio.audio.get_device_count.return_value = 0

        with pytest.raises(DeviceError):
            await AudioRecorder().record(0.05)
        mock_pyaudio.audio.terminate.assert_called_once()

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        with pytest.raises(RuntimeError):
            await AudioRecorder().stop_recording()

    def test_save_recording(self, tmp_path: Path):
        path = save_recording(b"RIFF....", tmp_path / "audio")
        assert path.parent == tmp_path / "audio"
        assert path.suffix == ".wav"
        assert path.read_bytes() == b"RIFF...."


class TestWhisperTranscriber:
    @pytest.mark.asyncio
    async def test_empty_audio(self):
        with pytest.raises(ValueError):
            await WhisperTranscriber(api_key="key").transcribe(b"")

    @pytest.mark.asyncio
    async def test_missing_key(self):
        transcriber = WhisperTranscriber(api_key=None)
        assert transcriber.is_available() is False
        with pytest.raises(TranscriptionError):
            await transcriber.transcribe(b"audio")

    @pytest.mark.asyncio
    async def test_transcribe(self):
        client = MagicMock()
        client.audio.transcriptions.create.return_value = SimpleNamespace(text="  公園で遊んだ  ")

        with patch("echodiary.audio.transcriber.openai") as openai_module:
            openai_module.OpenAI.return_value = client
            transcriber = WhisperTranscriber(api_key="key", model="whisper-1", language="ja")
            result = await transcriber.transcribe(b"wav-bytes")

        assert isinstance(result, TranscriptionResult)
        assert result.text == "公園で遊んだ"
        assert result.language == "ja"
        assert result.processing_time >= 0

        kwargs = client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["model"] == "whisper-1"
        assert kwargs["language"] == "ja"
        assert kwargs["file"].name == "recording.wav"
        assert kwargs["file"].read() == b"wav-bytes"

    @pytest.mark.asyncio
    async def test_language_detection(self):
        client = MagicMock()
        client.audio.transcriptions.create.return_value = SimpleNamespace(text="hello")

        with patch("echodiary.audio.transcriber.openai") as openai_module:
            openai_module.OpenAI.return_value = client
            await WhisperTranscriber(api_key="key", language=None).transcribe(b"wav-bytes")

        assert "language" not in client.audio.transcriptions.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_api_failure(self):
        client = MagicMock()
        client.audio.transcriptions.create.side_effect = RuntimeError("server error")

        with patch("echodiary.audio.transcriber.openai") as openai_module:
            openai_module.OpenAI.return_value = client
            with pytest.raises(TranscriptionError, match="server error"):
                await WhisperTranscriber(api_key="key").transcribe(b"wav-bytes")

    @pytest.mark.asyncio
    async def test_transcribe_file(self, tmp_path: Path):
        audio_path = tmp_path / "clip.wav"
        audio_path.write_bytes(b"wav-bytes")
        client = MagicMock()
        client.audio.transcriptions.create.return_value = SimpleNamespace(text="ok")

        with patch("echodiary.audio.transcriber.openai") as openai_module:
            openai_module.OpenAI.return_value = client
            result = await WhisperTranscriber(api_key="key").transcribe_file(audio_path)

        assert result.text == "ok"
        assert client.audio.transcriptions.create.call_args.kwargs["file"].name == "clip.wav"

    @pytest.mark.asyncio
    async def test_transcribe_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            await WhisperTranscriber(api_key="key").transcribe_file(tmp_path / "nope.wav")
