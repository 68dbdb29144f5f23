"""In-memory session store.

Sessions are kept most-recent-first; each holds its transcript fragments in
the order they were recorded. The store also owns the editable aggregate
text buffer shown to the user.

Manual edits to the buffer never rewrite fragment history. They are kept
on the session as a ``draft`` overlay so that selecting the session again
restores the edited text rather than silently discarding it.
"""

import logging
from datetime import UTC, datetime

from voicereport.core.models import Fragment, Session, derive_title
from voicereport.core.utils import MonotonicIds

logger = logging.getLogger(__name__)


class SessionStore:
    """Owner of the Session / Fragment graph and the editable buffer."""

    def __init__(self) -> None:
        self._sessions: list[Session] = []
        self._current_id: int | None = None
        self._ids = MonotonicIds()
        self.editable_text = ""

    @property
    def sessions(self) -> list[Session]:
        """All sessions, most recent first."""
        return list(self._sessions)

    @property
    def current_session_id(self) -> int | None:
        return self._current_id

    @property
    def current_session(self) -> Session | None:
        if self._current_id is None:
            return None
        return self.get(self._current_id)

    def get(self, session_id: int) -> Session | None:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    @staticmethod
    def aggregate_text(session: Session) -> str:
        """The text shown for editing: the draft if any, else the fragments."""
        if session.draft is not None:
            return session.draft
        return session.fragment_text()

    def create_session(self) -> Session:
        """Prepend a fresh session, make it current and clear the buffer."""
        session = Session(id=self._ids.next(), created_at=datetime.now(UTC))
        self._sessions.insert(0, session)
        self._current_id = session.id
        self.editable_text = ""
        logger.info("Session %s created", session.id)
        return session

    def ensure_session(self) -> Session | None:
        """Create the initial session when the store is empty."""
        if self._sessions:
            return None
        return self.create_session()

    def append_fragment(self, text: str) -> Fragment | None:
        """Append transcribed text to the current session.

        A session is created first when none is current (or the current one
        is already completed), and the fragment goes into it. Text typed
        while no session was current becomes the new session's draft. The
        first fragment of a session fixes its title.

        Returns:
            The new fragment, or None for blank text.
        """
        text = text.strip()
        if not text:
            return None

        session = self.current_session
        if session is None or session.completed:
            typed = self.editable_text if session is None else ""
            session = self.create_session()
            if typed.strip():
                self.editable_text = typed
                session.draft = typed

        fragment = Fragment(id=self._ids.next(), text=text, timestamp=datetime.now(UTC))
        if not session.fragments:
            session.title = derive_title(text)
        session.fragments.append(fragment)

        self.editable_text = f"{self.editable_text}\n\n{text}" if self.editable_text else text
        if session.draft is not None:
            session.draft = self.editable_text
        logger.debug("Fragment %s appended to session %s", fragment.id, session.id)
        return fragment

    def edit_text(self, text: str) -> None:
        """Replace the editable buffer with manually edited text.

        Edits on an open session are remembered as its draft; fragments
        are left untouched.
        """
        self.editable_text = text
        session = self.current_session
        if session is None or session.completed:
            return
        session.draft = None if text == session.fragment_text() else text

    def clear_buffer(self) -> None:
        self.editable_text = ""

    def complete_session(self) -> Session | None:
        """Mark the current session completed and clear the current pointer."""
        session = self.current_session
        if session is None:
            return None
        session.completed = True
        self._current_id = None
        logger.info("Session %s completed (%d fragments)", session.id, len(session.fragments))
        return session

    def select_session(self, session_id: int) -> Session | None:
        """Make an existing session current and load its text into the buffer.

        Unknown ids are ignored.
        """
        session = self.get(session_id)
        if session is None:
            logger.debug("select_session(%s) ignored: unknown id", session_id)
            return None
        self._current_id = session.id
        self.editable_text = self.aggregate_text(session)
        return session
