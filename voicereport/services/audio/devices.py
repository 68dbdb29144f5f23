"""Audio capture devices.

A capture device is acquired when recording starts and released when it
stops, at which point it hands back everything it captured as one WAV clip.
"""

import asyncio
import io
import logging
from abc import ABC, abstractmethod

import numpy as np
import soundfile as sf

from voicereport.core.exceptions import DeviceError
from voicereport.core.models import AudioClip

logger = logging.getLogger(__name__)


def pcm_frames_to_wav(frames: list[np.ndarray], sample_rate: int, channels: int = 1) -> bytes:
    """Encode captured int16 frames as a 16-bit PCM WAV file."""
    if frames:
        data = np.concatenate(frames)
    else:
        data = np.zeros((0, channels), dtype=np.int16)
    buffer = io.BytesIO()
    sf.write(buffer, data, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


class BaseCaptureDevice(ABC):
    """Interface that every capture device must implement."""

    @abstractmethod
    async def open(self) -> None:
        """Acquire the device and begin buffering audio.

        Raises:
            DeviceError: Permission denied or no device available.
        """

    @abstractmethod
    async def close(self) -> AudioClip | None:
        """Stop buffering, release the device and return the captured clip.

        Returns:
            The finished clip, or None if nothing was captured.
        """


class SoundDeviceMicrophone(BaseCaptureDevice):
    """Live microphone capture through PortAudio (``sounddevice``).

    Args:
        sample_rate: Capture rate in Hz.
        channels: Number of input channels.
        device: PortAudio device index or name (None = system default).
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        device: int | str | None = None,
    ) -> None:
        self._sample_rate = sample_rate
        self._channels = channels
        self._device = device
        self._frames: list[np.ndarray] = []
        self._stream = None

    def _callback(self, indata, _frames, _time_info, status) -> None:
        if status:
            logger.debug("Input stream status: %s", status)
        self._frames.append(indata.copy())

    def _open_stream(self) -> None:
        # PortAudio is loaded on first use so that importing this module
        # never requires an audio stack.
        import sounddevice as sd

        stream = sd.InputStream(
            samplerate=self._sample_rate,
            channels=self._channels,
            dtype="int16",
            device=self._device,
            callback=self._callback,
        )
        stream.start()
        self._stream = stream

    async def open(self) -> None:
        self._frames = []
        try:
            await asyncio.to_thread(self._open_stream)
        except Exception as exc:
            logger.warning("Could not open microphone: %s", exc)
            raise DeviceError() from exc
        logger.info(
            "Microphone opened (rate=%d, channels=%d)", self._sample_rate, self._channels
        )

    async def close(self) -> AudioClip | None:
        stream, self._stream = self._stream, None
        if stream is None:
            return None
        await asyncio.to_thread(stream.stop)
        await asyncio.to_thread(stream.close)

        frames, self._frames = self._frames, []
        sample_count = sum(len(frame) for frame in frames)
        if sample_count == 0:
            return None

        data = pcm_frames_to_wav(frames, self._sample_rate, self._channels)
        return AudioClip(data=data, duration=sample_count / self._sample_rate)


class StaticClipDevice(BaseCaptureDevice):
    """Device backed by audio recorded elsewhere (e.g. the browser).

    Call :meth:`load` with the recorded bytes before starting a recording.
    """

    def __init__(self) -> None:
        self._loaded: AudioClip | None = None
        self._active = False

    def load(self, data: bytes, mime_type: str = "audio/wav", filename: str = "audio.wav") -> None:
        self._loaded = AudioClip(data=data, mime_type=mime_type, filename=filename)

    async def open(self) -> None:
        if self._loaded is None:
            raise DeviceError("No recorded audio available")
        self._active = True

    async def close(self) -> AudioClip | None:
        if not self._active:
            return None
        self._active = False
        clip, self._loaded = self._loaded, None
        if clip is None or not clip.data:
            return None
        return clip
