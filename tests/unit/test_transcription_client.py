"""Tests for the hosted Whisper STT client.

All HTTP traffic goes through ``httpx.MockTransport``; no network access.
"""

import httpx
import pytest

from voicereport.core.exceptions import TranscriptionError
from voicereport.services.transcription import BaseSTT, create_stt
from voicereport.services.transcription.groq import GroqWhisperSTT

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _stt(settings, make_client, handler) -> GroqWhisperSTT:
    return GroqWhisperSTT(settings=settings, client=make_client(handler))


def _fixed(status_code=200, **kwargs):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, **kwargs)

    return handler


class TestCreateSTT:
    """Verify the provider factory."""

    def test_groq_provider(self, settings):
        stt = create_stt("groq", settings=settings)
        assert isinstance(stt, GroqWhisperSTT)
        assert isinstance(stt, BaseSTT)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown STT provider"):
            create_stt("whisper-local")


class TestTranscribe:
    """Verify request shape and response interpretation."""

    @pytest.mark.asyncio
    async def test_request_shape(self, settings, make_client, sample_clip):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"text": " hello world "})

        text = await _stt(settings, make_client, handler).transcribe(sample_clip, "k-123")

        assert text == "hello world"
        request = captured[0]
        assert request.method == "POST"
        assert str(request.url) == settings.transcription_url
        assert request.headers["Authorization"] == "Bearer k-123"
        assert request.headers["content-type"].startswith("multipart/form-data")
        body = request.content
        assert b'name="model"' in body
        assert b"whisper-large-v3-turbo" in body
        assert b'name="response_format"' in body
        assert b'name="file"; filename="audio.wav"' in body

    @pytest.mark.asyncio
    async def test_no_speech_returns_none(self, settings, make_client, sample_clip):
        stt = _stt(settings, make_client, _fixed(json={"text": "   "}))
        assert await stt.transcribe(sample_clip, "k") is None

    @pytest.mark.asyncio
    async def test_missing_text_field_returns_none(self, settings, make_client, sample_clip):
        stt = _stt(settings, make_client, _fixed(json={"x_groq": {"id": "req"}}))
        assert await stt.transcribe(sample_clip, "k") is None

    @pytest.mark.asyncio
    async def test_missing_clip_is_noop(self, settings, make_client):
        calls: list[httpx.Request] = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"text": "x"})

        assert await _stt(settings, make_client, handler).transcribe(None, "k") is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_missing_key_is_noop(self, settings, make_client, sample_clip):
        calls: list[httpx.Request] = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"text": "x"})

        assert await _stt(settings, make_client, handler).transcribe(sample_clip, "") is None
        assert calls == []


class TestTranscribeFailures:
    """Every service failure surfaces as TranscriptionError."""

    @pytest.mark.asyncio
    async def test_unauthorized(self, settings, make_client, sample_clip):
        stt = _stt(settings, make_client, _fixed(401, json={"error": {"message": "bad key"}}))
        with pytest.raises(TranscriptionError, match="Transcription failed"):
            await stt.transcribe(sample_clip, "k")

    @pytest.mark.asyncio
    async def test_server_error(self, settings, make_client, sample_clip):
        stt = _stt(settings, make_client, _fixed(500, text="boom"))
        with pytest.raises(TranscriptionError):
            await stt.transcribe(sample_clip, "k")

    @pytest.mark.asyncio
    async def test_non_json_body(self, settings, make_client, sample_clip):
        stt = _stt(settings, make_client, _fixed(200, text="<html>oops</html>"))
        with pytest.raises(TranscriptionError):
            await stt.transcribe(sample_clip, "k")

    @pytest.mark.asyncio
    async def test_network_failure(self, settings, make_client, sample_clip):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TranscriptionError):
            await _stt(settings, make_client, handler).transcribe(sample_clip, "k")
