"""Submission pipeline: finalized transcription -> report service.

Validates routing inputs, sends ``POST <serviceUrl>/process``, interprets
the reply and, on success, records the exchange in the chat log and
completes the active session. Every failure is terminal for the attempt;
nothing is retried.
"""

import logging

import httpx
from pydantic import ValidationError as PydanticValidationError

from voicereport.core.config import Settings, get_settings
from voicereport.core.exceptions import (
    ConnectivityError,
    ServerError,
    SubmissionInProgressError,
    ValidationError,
)
from voicereport.core.models import (
    Acknowledgment,
    ChatRole,
    Identity,
    SubmissionRequest,
    SubmissionResponse,
)
from voicereport.services.chat_log import ChatLog
from voicereport.services.credentials import Configuration
from voicereport.services.sessions import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_CONCLUSION = "Processed successfully"


def _decode_body(response: httpx.Response) -> tuple[dict | None, str]:
    """Return (JSON object or None, raw text) for a response body."""
    text = response.text
    if not text.strip():
        return None, text
    try:
        data = response.json()
    except ValueError:
        return None, text
    return (data if isinstance(data, dict) else None), text


def _first_text(*values) -> str | None:
    for value in values:
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return None


def error_message(response: httpx.Response) -> str:
    """Best available error string for a failed submission.

    Prefers structured ``detail`` / ``message`` fields, then the raw body,
    then a generic status message.
    """
    data, text = _decode_body(response)
    if data is not None:
        try:
            parsed = SubmissionResponse.model_validate(data)
        except PydanticValidationError:
            parsed = SubmissionResponse()
        structured = _first_text(parsed.detail, parsed.message)
        if structured:
            return structured
    return _first_text(text) or f"Server error: {response.status_code}"


def parse_acknowledgment(response: httpx.Response) -> Acknowledgment:
    """Interpret a 2xx reply; tolerates empty and malformed bodies."""
    data, _text = _decode_body(response)
    if data is None:
        return Acknowledgment()
    try:
        parsed = SubmissionResponse.model_validate(data)
    except PydanticValidationError:
        return Acknowledgment(payload=data)
    return Acknowledgment(
        conclusion=_first_text(parsed.conclusion) or DEFAULT_CONCLUSION,
        payload=data,
    )


class SubmissionPipeline:
    """Sends the editable text to the report service.

    Args:
        configuration: Process-wide configuration (service URL, bootstrap state).
        store: Session store to complete on success.
        chat_log: Chat log to append to on success.
        settings: Optional Settings instance (defaults to get_settings()).
        client: Optional ``httpx.AsyncClient`` (injected in tests).
    """

    def __init__(
        self,
        configuration: Configuration,
        store: SessionStore,
        chat_log: ChatLog,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._configuration = configuration
        self._store = store
        self._chat_log = chat_log
        self._settings = settings or get_settings()
        self._client = client or httpx.AsyncClient(timeout=self._settings.http_timeout)
        self._in_flight = False

    @property
    def busy(self) -> bool:
        return self._in_flight

    @staticmethod
    def validate(
        editable_text: str,
        selected_sheet: str | None,
        identity: Identity | None,
    ) -> SubmissionRequest:
        """Check routing inputs in order: sheet, identity, text.

        Raises:
            ValidationError: Naming the first missing input.
        """
        if not selected_sheet:
            raise ValidationError(["sheet"])
        name = identity.name.strip() if identity else ""
        location = identity.location.strip() if identity else ""
        if not name or not location:
            missing = [f for f, v in (("name", name), ("location", location)) if not v]
            raise ValidationError(missing)
        transcription = (editable_text or "").strip()
        if not transcription:
            raise ValidationError(["transcription"])
        return SubmissionRequest(
            transcription=transcription,
            sheet_name=selected_sheet,
            name=name,
            location=location,
        )

    async def submit(
        self,
        editable_text: str,
        selected_sheet: str | None,
        identity: Identity | None,
    ) -> Acknowledgment:
        """Validate, send, and record one submission.

        Raises:
            SubmissionInProgressError: A previous submit has not resolved yet.
            ValidationError: Not bootstrapped, or a routing input is missing.
            ConnectivityError: The report service could not be reached.
            ServerError: The report service answered with a non-2xx status.
        """
        if self._in_flight:
            raise SubmissionInProgressError()
        if not self._configuration.bootstrapped:
            raise ValidationError(["credentials"], detail="Please load credentials first.")

        request = self.validate(editable_text, selected_sheet, identity)

        self._in_flight = True
        try:
            acknowledgment = await self._send(request)
            await self._chat_log.append(ChatRole.submitter, request.transcription)
            await self._chat_log.append(ChatRole.system, acknowledgment.conclusion)
            self._store.complete_session()
            self._store.clear_buffer()
        finally:
            self._in_flight = False
        return acknowledgment

    async def _send(self, request: SubmissionRequest) -> Acknowledgment:
        url = f"{self._configuration.service_url}/process"
        fields = request.model_dump()
        if self._settings.submission_encoding == "query":
            kwargs = {"params": fields}
        else:
            kwargs = {"json": fields}

        logger.info(
            "POST %s sheet=%s (%d chars)", url, request.sheet_name, len(request.transcription)
        )
        try:
            response = await self._client.post(url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Submission request failed: %s", exc)
            raise ConnectivityError() from exc

        if not response.is_success:
            message = error_message(response)
            logger.warning("Report service responded %s: %s", response.status_code, message)
            raise ServerError(response.status_code, message)

        return parse_acknowledgment(response)

    async def aclose(self) -> None:
        await self._client.aclose()
