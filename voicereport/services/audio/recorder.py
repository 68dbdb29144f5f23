"""Recording controller.

Owns the capture device handle and enforces that at most one recording is
active and at most one finished clip is pending transcription.

States: idle -> recording -> idle (clip ready)
"""

import logging
from enum import StrEnum

from voicereport.core.exceptions import DeviceError
from voicereport.core.models import AudioClip
from voicereport.services.audio.devices import BaseCaptureDevice

logger = logging.getLogger(__name__)


class RecorderState(StrEnum):
    """Possible states of the recording controller."""

    idle = "idle"
    recording = "recording"


class RecordingController:
    """Start / stop state machine around a :class:`BaseCaptureDevice`.

    ``start()`` while recording and ``stop()`` while idle are no-ops; the
    guard is the state itself, never a second device acquisition.

    Args:
        device: The capture device to drive.
    """

    def __init__(self, device: BaseCaptureDevice) -> None:
        self._device = device
        self.state = RecorderState.idle
        self._pending: AudioClip | None = None

    @property
    def is_recording(self) -> bool:
        return self.state == RecorderState.recording

    @property
    def pending_clip(self) -> AudioClip | None:
        return self._pending

    @property
    def device(self) -> BaseCaptureDevice:
        return self._device

    async def start(self) -> None:
        """Acquire the device and begin recording.

        Raises:
            DeviceError: The device could not be acquired; state stays idle.
        """
        if self.is_recording:
            logger.debug("start() ignored: already recording")
            return
        try:
            await self._device.open()
        except DeviceError:
            raise
        except Exception as exc:
            raise DeviceError() from exc
        self.state = RecorderState.recording
        logger.info("Recording started")

    async def stop(self) -> AudioClip | None:
        """Finish recording, release the device and hold the clip.

        A new clip replaces any clip still pending.

        Returns:
            The finished clip, or None when idle or nothing was captured.

        Raises:
            DeviceError: The device failed while being released; state is idle.
        """
        if not self.is_recording:
            return None
        try:
            clip = await self._device.close()
        except DeviceError:
            raise
        except Exception as exc:
            raise DeviceError("Error releasing microphone") from exc
        finally:
            self.state = RecorderState.idle

        if clip is None:
            logger.info("Recording stopped with no audio captured")
            return None
        if self._pending is not None:
            logger.info("Replacing untranscribed clip (%d bytes)", self._pending.size_bytes)
        self._pending = clip
        logger.info("Recording stopped: %d bytes", clip.size_bytes)
        return clip

    def take_clip(self) -> AudioClip | None:
        """Remove and return the pending clip."""
        clip, self._pending = self._pending, None
        return clip

    def discard_clip(self) -> None:
        self._pending = None
