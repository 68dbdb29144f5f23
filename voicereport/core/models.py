"""
Pydantic v2 models shared across the workflow engine.

Domain state (sessions, chat entries, configuration) and the strict
intermediate representations parsed at each network boundary.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictStr, field_validator

UNTITLED_SESSION = "New Transcription"
TITLE_MAX_CHARS = 50

# ---------------------------------------------------------------------------
# Credentials / configuration
# ---------------------------------------------------------------------------


class Identity(BaseModel):
    """The (name, location) pair identifying a submitter."""

    model_config = ConfigDict(frozen=True)

    name: StrictStr
    location: StrictStr

    @field_validator("name", "location")
    @classmethod
    def _strip_and_require(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class CredentialsPayload(BaseModel):
    """Body of ``GET /get_credentials`` as received from the report service.

    Accepts both the camelCase names and the upper-case names used by
    older deployments of the backend.
    """

    model_config = ConfigDict(extra="ignore")

    api_key: StrictStr = Field(validation_alias=AliasChoices("apiKey", "GROQ_API_KEY"))
    sheets: list[Any] = Field(validation_alias=AliasChoices("sheets", "AVAILABLE_SHEETS"))
    authorized_users: list[Identity] | None = Field(
        default=None,
        validation_alias=AliasChoices("authorizedUsers", "AUTHORIZED_USERS"),
    )

    @field_validator("api_key")
    @classmethod
    def _api_key_present(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("apiKey is blank")
        return value


class CredentialSet(BaseModel):
    """Connection details obtained from a successful bootstrap."""

    service_url: str
    api_key: str
    sheets: list[str] = Field(default_factory=list)
    authorized_identities: list[Identity] = Field(default_factory=list)

    @property
    def default_sheet(self) -> str | None:
        return self.sheets[0] if self.sheets else None


class ConfigurationStatus(StrEnum):
    """Lifecycle of the process-wide configuration."""

    unconfigured = "unconfigured"
    bootstrapping = "bootstrapping"
    bootstrapped = "bootstrapped"


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------


class AudioClip(BaseModel):
    """One finished recording, held until transcribed or discarded."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "audio/wav"
    filename: str = "audio.wav"
    duration: float = 0.0

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class TranscriptionResponse(BaseModel):
    """Body of the speech-to-text response (``response_format=json``)."""

    model_config = ConfigDict(extra="ignore")

    text: str | None = None


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class Fragment(BaseModel):
    """One transcribed piece of text appended to a session."""

    model_config = ConfigDict(frozen=True)

    id: int
    text: str
    timestamp: datetime


class Session(BaseModel):
    """A unit of transcription work spanning one or more recordings.

    ``draft`` holds manual edits of the aggregate text; when ``None`` the
    aggregate is derived from ``fragments``.
    """

    id: int
    title: str = UNTITLED_SESSION
    created_at: datetime
    fragments: list[Fragment] = Field(default_factory=list)
    completed: bool = False
    draft: str | None = None

    def fragment_text(self) -> str:
        """Fragment texts joined with blank lines."""
        return "\n\n".join(fragment.text for fragment in self.fragments)


def derive_title(text: str) -> str:
    """Session title from its first fragment: 50 chars plus an ellipsis."""
    if len(text) > TITLE_MAX_CHARS:
        return text[:TITLE_MAX_CHARS] + "..."
    return text


# ---------------------------------------------------------------------------
# Chat log
# ---------------------------------------------------------------------------


class ChatRole(StrEnum):
    """Author of a chat log entry."""

    submitter = "submitter"
    system = "system"


class ChatEntry(BaseModel):
    """One persisted line of the submission history."""

    id: int
    role: ChatRole
    content: str
    timestamp: datetime


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class SubmissionRequest(BaseModel):
    """Fields sent to ``POST <serviceUrl>/process``."""

    transcription: str
    sheet_name: str
    name: str
    location: str


class SubmissionResponse(BaseModel):
    """Structured fields the report service may include in its reply."""

    model_config = ConfigDict(extra="ignore")

    detail: Any = None
    message: Any = None
    conclusion: Any = None


class Acknowledgment(BaseModel):
    """Human-readable outcome of a successful submission."""

    conclusion: str = "Processed successfully"
    payload: dict | None = None


# ---------------------------------------------------------------------------
# Notices
# ---------------------------------------------------------------------------


class NoticeKind(StrEnum):
    """Visual category of a transient message."""

    success = "success"
    error = "error"
    info = "info"


class Notice(BaseModel):
    """Transient, auto-dismissing message shown to the user."""

    kind: NoticeKind
    text: str
    expires_at: datetime
