"""Shared pytest fixtures for the voicereport test suite.

Provides settings isolated from the environment, a temporary SQLite
database, ``httpx.MockTransport``-backed clients and a fake capture device.
"""

import io
import math
import struct
import wave
from collections.abc import Callable
from unittest.mock import AsyncMock

import httpx
import pytest

from voicereport.core.config import Settings
from voicereport.core.models import AudioClip
from voicereport.services.storage import database

# ---------------------------------------------------------------------------
# Settings / storage
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite file, ignoring any .env."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'voicereport.db'}",
        credential_url_template="https://{secret}.example.test",
        transcription_url="https://stt.example.test/v1/audio/transcriptions",
    )


@pytest.fixture
async def db(settings):
    """Initialise the module-level engine on the temporary database."""
    database.reset_engine()
    engine = database.get_engine(settings.database_url)
    await database.init_db(engine)
    yield engine
    await database.close_db()


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
async def make_client():
    """Build an ``httpx.AsyncClient`` whose requests go to ``handler``.

    The handler receives an ``httpx.Request`` and returns an
    ``httpx.Response`` (or raises an ``httpx`` transport error).
    """
    clients: list[httpx.AsyncClient] = []

    def _make(handler: Callable) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_wav_bytes():
    """Generate 1 second of 440Hz sine-wave WAV audio (16kHz, 16-bit, mono).

    Returns:
        bytes: A complete WAV file.
    """
    sample_rate = 16000
    amplitude = 16000  # ~50% of max int16
    frames = b"".join(
        struct.pack("<h", int(amplitude * math.sin(2 * math.pi * 440.0 * i / sample_rate)))
        for i in range(sample_rate)
    )
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(frames)
    return buffer.getvalue()


@pytest.fixture
def sample_clip(sample_wav_bytes):
    return AudioClip(data=sample_wav_bytes, duration=1.0)


@pytest.fixture
def mock_device(sample_clip):
    """Create a mock capture device that yields ``sample_clip`` on close.

    Returns:
        AsyncMock: A mock implementing the BaseCaptureDevice interface.
    """
    from voicereport.services.audio.devices import BaseCaptureDevice

    device = AsyncMock(spec=BaseCaptureDevice)
    device.open.return_value = None
    device.close.return_value = sample_clip
    return device
