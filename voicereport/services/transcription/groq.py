"""Hosted Whisper STT over the OpenAI-compatible transcription API.

Sends the clip as a multipart upload with a fixed model and
``response_format=json``; the default endpoint is Groq's.
"""

import logging

import httpx
from pydantic import ValidationError as PydanticValidationError

from voicereport.core.config import Settings, get_settings
from voicereport.core.exceptions import TranscriptionError
from voicereport.core.models import AudioClip, TranscriptionResponse
from voicereport.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)


class GroqWhisperSTT(BaseSTT):
    """Speech-to-text provider calling a hosted Whisper endpoint.

    Args:
        model: Model identifier (defaults to settings.transcription_model).
        url: Transcription endpoint (defaults to settings.transcription_url).
        settings: Optional Settings instance (defaults to get_settings()).
        client: Optional ``httpx.AsyncClient`` (injected in tests).
    """

    def __init__(
        self,
        model: str | None = None,
        url: str | None = None,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model or self._settings.transcription_model
        self._url = url or self._settings.transcription_url
        self._client = client or httpx.AsyncClient(timeout=self._settings.transcription_timeout)

    async def transcribe(self, clip: AudioClip | None, api_key: str) -> str | None:
        if clip is None or not api_key:
            logger.warning("Transcription skipped: %s", "no clip" if clip is None else "no API key")
            return None

        files = {"file": (clip.filename, clip.data, clip.mime_type)}
        data = {"model": self._model, "response_format": "json"}
        headers = {"Authorization": f"Bearer {api_key}"}

        logger.info("POST %s model=%s (%d bytes)", self._url, self._model, clip.size_bytes)
        try:
            response = await self._client.post(self._url, data=data, files=files, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Transcription request failed: %s", exc)
            raise TranscriptionError() from exc

        if not response.is_success:
            logger.warning(
                "Transcription service responded %s: %s",
                response.status_code,
                response.text[:300],
            )
            raise TranscriptionError()

        try:
            result = TranscriptionResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            logger.warning("Undecodable transcription response: %s", exc)
            raise TranscriptionError() from exc

        text = (result.text or "").strip()
        if not text:
            logger.info("No speech detected in clip")
            return None
        return text

    async def aclose(self) -> None:
        await self._client.aclose()
