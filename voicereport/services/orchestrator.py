"""Workflow controller tying the components together.

``AppContext`` is the process-wide set of component owners, built once and
passed explicitly. ``ReportWorkflow`` exposes the user-triggered actions,
catches every domain error at the boundary and turns it into a transient
notice, so the system is always back in a stable idle state afterwards.

Usage::

    from voicereport.services.orchestrator import AppContext, ReportWorkflow

    workflow = ReportWorkflow(AppContext.create())
    await workflow.startup()
    await workflow.save_configuration("secret", "Ann", "HQ")
    await workflow.start_recording()
    await workflow.stop_recording()
    await workflow.transcribe_pending()
    await workflow.submit()
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import httpx

from voicereport.core.config import Settings, get_settings
from voicereport.core.exceptions import TranscriptionError, VoiceReportError
from voicereport.core.models import Acknowledgment, CredentialSet, Notice, NoticeKind
from voicereport.services.audio import BaseCaptureDevice, RecordingController, SoundDeviceMicrophone
from voicereport.services.chat_log import ChatLog
from voicereport.services.credentials import Configuration, CredentialBootstrapper
from voicereport.services.sessions import SessionStore
from voicereport.services.storage.database import close_db, init_db
from voicereport.services.submission import SubmissionPipeline
from voicereport.services.transcription import BaseSTT, create_stt

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Owners of all mutable state, shared by the workflow."""

    settings: Settings
    configuration: Configuration
    store: SessionStore
    chat_log: ChatLog
    recorder: RecordingController
    stt: BaseSTT
    bootstrapper: CredentialBootstrapper
    pipeline: SubmissionPipeline

    @classmethod
    def create(
        cls,
        device: BaseCaptureDevice | None = None,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        chat_log: ChatLog | None = None,
    ) -> "AppContext":
        """Build a context in its initial, unconfigured state.

        Args:
            device: Capture device (defaults to the system microphone).
            settings: Optional Settings instance (defaults to get_settings()).
            client: Optional shared ``httpx.AsyncClient`` for all HTTP calls.
            chat_log: Optional chat log (defaults to one on the configured DB).
        """
        settings = settings or get_settings()
        configuration = Configuration()
        store = SessionStore()
        chat_log = chat_log or ChatLog(settings=settings)
        device = device or SoundDeviceMicrophone(
            sample_rate=settings.sample_rate, channels=settings.channels
        )
        return cls(
            settings=settings,
            configuration=configuration,
            store=store,
            chat_log=chat_log,
            recorder=RecordingController(device),
            stt=create_stt("groq", settings=settings, client=client),
            bootstrapper=CredentialBootstrapper(configuration, settings=settings, client=client),
            pipeline=SubmissionPipeline(
                configuration, store, chat_log, settings=settings, client=client
            ),
        )


class ReportWorkflow:
    """User-facing actions over an :class:`AppContext`.

    Each action returns a plain result (or False / None on failure) and
    leaves a :class:`Notice` describing the outcome.

    Args:
        context: The component owners to drive.
    """

    def __init__(self, context: AppContext) -> None:
        self.context = context
        self.transcribing = False
        self._notice: Notice | None = None

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------

    def notify(self, kind: NoticeKind, text: str) -> Notice:
        """Show a message for ``settings.notice_seconds``."""
        expires_at = datetime.now(UTC) + timedelta(seconds=self.context.settings.notice_seconds)
        self._notice = Notice(kind=kind, text=text, expires_at=expires_at)
        return self._notice

    def current_notice(self, now: datetime | None = None) -> Notice | None:
        """The visible message, or None once it has expired."""
        if self._notice is None:
            return None
        if (now or datetime.now(UTC)) >= self._notice.expires_at:
            self._notice = None
        return self._notice

    def _fail(self, exc: VoiceReportError) -> None:
        logger.info("%s: %s", exc.code, exc.detail)
        self.notify(NoticeKind.error, exc.detail)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self.transcribing or self.context.pipeline.busy

    async def startup(self) -> None:
        """Prepare storage, rehydrate chat history and open a first session."""
        try:
            await init_db()
            await self.context.chat_log.load()
        except Exception:
            logger.exception("Failed to load chat history")
            self.notify(NoticeKind.error, "Chat history could not be loaded.")
        self.context.store.ensure_session()

    async def shutdown(self) -> None:
        if self.context.recorder.is_recording:
            await self.context.recorder.stop()
        await self.context.bootstrapper.aclose()
        await self.context.stt.aclose()
        await self.context.pipeline.aclose()
        await close_db()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def save_configuration(
        self,
        secret: str,
        name: str = "",
        location: str = "",
    ) -> CredentialSet | None:
        """Bootstrap credentials, then confirm the identity if one was given."""
        try:
            credentials = await self.context.bootstrapper.bootstrap(secret)
        except VoiceReportError as exc:
            self._fail(exc)
            return None

        if (name or "").strip() or (location or "").strip():
            try:
                self.context.configuration.confirm_identity(name, location)
            except VoiceReportError as exc:
                self._fail(exc)
                return credentials

        if not credentials.sheets:
            logger.warning("No valid sheets available after filtering")
        self.notify(NoticeKind.success, "Credentials loaded successfully!")
        return credentials

    def confirm_identity(self, name: str, location: str) -> bool:
        try:
            self.context.configuration.confirm_identity(name, location)
        except VoiceReportError as exc:
            self._fail(exc)
            return False
        return True

    def select_sheet(self, sheet: str) -> bool:
        try:
            self.context.configuration.select_sheet(sheet)
        except VoiceReportError as exc:
            self._fail(exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Record -> transcribe -> append
    # ------------------------------------------------------------------

    async def start_recording(self) -> bool:
        try:
            await self.context.recorder.start()
        except VoiceReportError as exc:
            self._fail(exc)
            return False
        return True

    async def stop_recording(self) -> bool:
        """Stop recording; True when a clip is ready for transcription."""
        try:
            clip = await self.context.recorder.stop()
        except VoiceReportError as exc:
            self._fail(exc)
            return False
        return clip is not None

    async def transcribe_pending(self) -> str | None:
        """Transcribe the pending clip and append the text to the session.

        The clip is consumed once the service answers; it is kept for a
        manual retry when transcription fails, or when a submission is in
        flight.
        """
        recorder = self.context.recorder
        clip = recorder.pending_clip
        api_key = self.context.configuration.api_key
        if clip is None or not api_key or self.transcribing:
            return None
        if self.context.pipeline.busy:
            self.notify(NoticeKind.info, "Please wait for the submission to finish.")
            return None

        self.transcribing = True
        try:
            text = await self.context.stt.transcribe(clip, api_key)
        except TranscriptionError as exc:
            self._fail(exc)
            return None
        finally:
            self.transcribing = False

        if recorder.pending_clip is clip:
            recorder.take_clip()
        if text is None:
            return None
        self.context.store.append_fragment(text)
        return text

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def discard_recording(self) -> None:
        """Drop the pending clip without transcribing it."""
        self.context.recorder.discard_clip()

    def new_session(self) -> None:
        self.context.store.create_session()

    def select_session(self, session_id: int) -> None:
        self.context.store.select_session(session_id)

    def edit_text(self, text: str) -> None:
        self.context.store.edit_text(text)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self) -> Acknowledgment | None:
        """Submit the editable text to the selected sheet."""
        if self.transcribing:
            self.notify(NoticeKind.info, "Please wait for the transcription to finish.")
            return None
        configuration = self.context.configuration
        try:
            acknowledgment = await self.context.pipeline.submit(
                self.context.store.editable_text,
                configuration.selected_sheet,
                configuration.identity,
            )
        except VoiceReportError as exc:
            self._fail(exc)
            return None
        self.notify(NoticeKind.success, "Sheet updated successfully!")
        return acknowledgment
