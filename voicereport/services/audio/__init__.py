"""
Audio module - Capture devices and the recording controller.
"""

from .devices import BaseCaptureDevice, SoundDeviceMicrophone, StaticClipDevice
from .recorder import RecorderState, RecordingController

__all__ = [
    "BaseCaptureDevice",
    "RecorderState",
    "RecordingController",
    "SoundDeviceMicrophone",
    "StaticClipDevice",
]
