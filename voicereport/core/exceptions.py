"""
voicereport exception hierarchy.

All application-specific exceptions inherit from VoiceReportError so the
workflow controller can turn any failure into a transient user notice.
Every ``detail`` is a stable, user-presentable message.
"""

from datetime import UTC, datetime


class VoiceReportError(Exception):
    """Base exception for all voicereport errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "VOICEREPORT_ERROR",
    ) -> None:
        self.detail = detail
        self.code = code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


class ValidationError(VoiceReportError):
    """Raised when caller-supplied input is missing or invalid.

    Args:
        fields: Names of the missing / invalid inputs, in check order.
        detail: Optional message override.
    """

    def __init__(self, fields: list[str], detail: str | None = None) -> None:
        self.fields = list(fields)
        super().__init__(
            detail=detail
            or f"Please fill in all required fields. Missing: {', '.join(self.fields)}",
            code="VALIDATION_ERROR",
        )


class ConnectivityError(VoiceReportError):
    """Raised when a remote service cannot be reached at all."""

    def __init__(
        self,
        detail: str = (
            "Failed to connect to the server. "
            "Please check your internet connection and try again."
        ),
    ) -> None:
        super().__init__(detail=detail, code="CONNECTIVITY_ERROR")


class ServerError(VoiceReportError):
    """Raised when a remote service answers with a non-2xx status."""

    def __init__(self, status_code: int, detail: str | None = None) -> None:
        self.status_code = status_code
        super().__init__(
            detail=detail or f"Server error: {status_code}",
            code="SERVER_ERROR",
        )


class FormatError(VoiceReportError):
    """Raised when a response body does not have the expected shape."""

    def __init__(self, detail: str = "Received an invalid response from the server.") -> None:
        super().__init__(detail=detail, code="FORMAT_ERROR")


class DeviceError(VoiceReportError):
    """Raised when the audio capture device cannot be acquired."""

    def __init__(self, detail: str = "Error accessing microphone") -> None:
        super().__init__(detail=detail, code="DEVICE_ERROR")


class TranscriptionError(VoiceReportError):
    """Raised when the speech-to-text service fails."""

    def __init__(self, detail: str = "Transcription failed") -> None:
        super().__init__(detail=detail, code="TRANSCRIPTION_ERROR")


class SubmissionInProgressError(VoiceReportError):
    """Raised when a submission is attempted while another is in flight."""

    def __init__(self) -> None:
        super().__init__(
            detail="A submission is already in progress",
            code="SUBMISSION_IN_PROGRESS",
        )
