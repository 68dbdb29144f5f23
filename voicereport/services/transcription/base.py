"""
Abstract base class for Speech-to-Text providers.

All STT implementations must implement this interface, enabling
provider-agnostic transcription in the workflow layer.
"""

from abc import ABC, abstractmethod

from voicereport.core.models import AudioClip


class BaseSTT(ABC):
    """Interface that every STT provider must implement."""

    @abstractmethod
    async def transcribe(self, clip: AudioClip | None, api_key: str) -> str | None:
        """Transcribe one complete audio clip.

        Args:
            clip: The recorded clip.
            api_key: Bearer key for the speech service.

        Returns:
            The trimmed recognized text, or None when no speech was detected
            (or the call was skipped for lack of a clip / key).

        Raises:
            TranscriptionError: The service failed.
        """

    async def aclose(self) -> None:
        """Release any network resources held by the provider."""
