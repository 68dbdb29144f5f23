"""Tests for RecordingController and the capture devices.

The microphone itself is never touched: the controller is driven through a
mocked BaseCaptureDevice, and SoundDeviceMicrophone gets a fake
``sounddevice`` module injected into ``sys.modules``.
"""

import io
import sys
from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest
import soundfile as sf

from voicereport.core.exceptions import DeviceError
from voicereport.core.models import AudioClip
from voicereport.services.audio import (
    RecorderState,
    RecordingController,
    SoundDeviceMicrophone,
    StaticClipDevice,
)
from voicereport.services.audio.devices import pcm_frames_to_wav

# ===================================================================
# RecordingController
# ===================================================================


class TestRecordingController:
    """Verify the idle / recording state machine."""

    @pytest.mark.asyncio
    async def test_start_then_stop_yields_pending_clip(self, mock_device, sample_clip):
        recorder = RecordingController(mock_device)

        await recorder.start()
        assert recorder.state == RecorderState.recording

        clip = await recorder.stop()

        assert clip == sample_clip
        assert recorder.pending_clip == sample_clip
        assert recorder.state == RecorderState.idle
        mock_device.open.assert_awaited_once()
        mock_device.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_while_recording_is_noop(self, mock_device):
        recorder = RecordingController(mock_device)

        await recorder.start()
        await recorder.start()

        mock_device.open.assert_awaited_once()
        assert recorder.is_recording

    @pytest.mark.asyncio
    async def test_stop_while_idle_is_noop(self, mock_device):
        recorder = RecordingController(mock_device)

        assert await recorder.stop() is None
        mock_device.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_device_error_keeps_idle(self, mock_device):
        mock_device.open.side_effect = DeviceError()
        recorder = RecordingController(mock_device)

        with pytest.raises(DeviceError, match="Error accessing microphone"):
            await recorder.start()
        assert recorder.state == RecorderState.idle

    @pytest.mark.asyncio
    async def test_unexpected_open_failure_wrapped(self, mock_device):
        mock_device.open.side_effect = PermissionError("denied")
        recorder = RecordingController(mock_device)

        with pytest.raises(DeviceError):
            await recorder.start()
        assert not recorder.is_recording

    @pytest.mark.asyncio
    async def test_close_failure_returns_to_idle(self, mock_device):
        mock_device.close.side_effect = RuntimeError("stream died")
        recorder = RecordingController(mock_device)
        await recorder.start()

        with pytest.raises(DeviceError, match="releasing"):
            await recorder.stop()
        assert recorder.state == RecorderState.idle
        assert recorder.pending_clip is None

    @pytest.mark.asyncio
    async def test_empty_capture_produces_no_clip(self, mock_device):
        mock_device.close.return_value = None
        recorder = RecordingController(mock_device)
        await recorder.start()

        assert await recorder.stop() is None
        assert recorder.pending_clip is None

    @pytest.mark.asyncio
    async def test_new_clip_replaces_pending(self, mock_device):
        first = AudioClip(data=b"first")
        second = AudioClip(data=b"second")
        mock_device.close.side_effect = [first, second]
        recorder = RecordingController(mock_device)

        await recorder.start()
        await recorder.stop()
        await recorder.start()
        await recorder.stop()

        assert recorder.pending_clip == second

    @pytest.mark.asyncio
    async def test_take_clip_consumes(self, mock_device, sample_clip):
        recorder = RecordingController(mock_device)
        await recorder.start()
        await recorder.stop()

        assert recorder.take_clip() == sample_clip
        assert recorder.take_clip() is None

    @pytest.mark.asyncio
    async def test_discard_clip(self, mock_device):
        recorder = RecordingController(mock_device)
        await recorder.start()
        await recorder.stop()

        recorder.discard_clip()
        assert recorder.pending_clip is None


# ===================================================================
# StaticClipDevice
# ===================================================================


class TestStaticClipDevice:
    """Verify the pre-recorded clip device used by the browser UI."""

    @pytest.mark.asyncio
    async def test_open_without_audio_fails(self):
        with pytest.raises(DeviceError, match="No recorded audio"):
            await StaticClipDevice().open()

    @pytest.mark.asyncio
    async def test_loaded_clip_returned_once(self, sample_wav_bytes):
        device = StaticClipDevice()
        device.load(sample_wav_bytes, mime_type="audio/webm", filename="rec.webm")

        await device.open()
        clip = await device.close()

        assert clip.data == sample_wav_bytes
        assert clip.mime_type == "audio/webm"
        assert clip.filename == "rec.webm"
        assert await device.close() is None

    @pytest.mark.asyncio
    async def test_empty_bytes_produce_no_clip(self):
        device = StaticClipDevice()
        device.load(b"")
        await device.open()

        assert await device.close() is None

    @pytest.mark.asyncio
    async def test_drives_controller(self, sample_wav_bytes):
        device = StaticClipDevice()
        recorder = RecordingController(device)
        device.load(sample_wav_bytes)

        await recorder.start()
        await recorder.stop()

        assert recorder.pending_clip.data == sample_wav_bytes


# ===================================================================
# SoundDeviceMicrophone
# ===================================================================


class _FakeInputStream:
    """Stand-in for ``sounddevice.InputStream`` that emits one block on start."""

    def __init__(self, samplerate, channels, dtype, device, callback):
        self.samplerate = samplerate
        self.channels = channels
        self.dtype = dtype
        self._callback = callback
        self.stopped = False
        self.closed = False

    def start(self):
        block = np.full((1600, self.channels), 1000, dtype=np.int16)
        self._callback(block, len(block), None, None)

    def stop(self):
        self.stopped = True

    def close(self):
        self.closed = True


@pytest.fixture
def fake_sounddevice(monkeypatch):
    module = SimpleNamespace(InputStream=_FakeInputStream)
    monkeypatch.setitem(sys.modules, "sounddevice", module)
    return module


class TestSoundDeviceMicrophone:
    """Verify capture through a faked PortAudio stream."""

    @pytest.mark.asyncio
    async def test_capture_encodes_wav(self, fake_sounddevice):
        microphone = SoundDeviceMicrophone(sample_rate=16000, channels=1)

        await microphone.open()
        clip = await microphone.close()

        assert clip is not None
        assert clip.mime_type == "audio/wav"
        assert clip.duration == pytest.approx(0.1)
        data, rate = sf.read(io.BytesIO(clip.data), dtype="int16")
        assert rate == 16000
        assert len(data) == 1600

    @pytest.mark.asyncio
    async def test_open_failure_raises_device_error(self, monkeypatch):
        failing = MagicMock(side_effect=OSError("PortAudio library not found"))
        monkeypatch.setitem(sys.modules, "sounddevice", SimpleNamespace(InputStream=failing))

        with pytest.raises(DeviceError):
            await SoundDeviceMicrophone().open()

    @pytest.mark.asyncio
    async def test_close_without_open(self):
        assert await SoundDeviceMicrophone().close() is None


class TestPcmFramesToWav:
    """Verify WAV encoding of captured frames."""

    def test_empty_frames_produce_valid_header(self):
        wav = pcm_frames_to_wav([], 16000)
        assert wav[:4] == b"RIFF"
        assert wav[8:12] == b"WAVE"
