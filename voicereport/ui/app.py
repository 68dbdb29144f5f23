"""
voicereport Streamlit UI: main entry point.

Run with: ``streamlit run voicereport/ui/app.py``

A thin rendering layer over :class:`ReportWorkflow`. The browser records
the audio (``st.audio_input``); the clip is fed to the workflow through a
:class:`StaticClipDevice`.
"""

# ---------------------------------------------------------------------------
# Ensure project root is on sys.path so ``from voicereport.xxx`` imports work.
# Streamlit replaces sys.path[0] with the script directory (voicereport/ui/).
# ---------------------------------------------------------------------------
import sys  # noqa: E402
from pathlib import Path  # noqa: E402

_project_root = str(Path(__file__).resolve().parent.parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

import asyncio  # noqa: E402
import hashlib  # noqa: E402
import logging  # noqa: E402

import streamlit as st  # noqa: E402

from voicereport.core.config import get_settings  # noqa: E402
from voicereport.core.models import ChatRole, NoticeKind  # noqa: E402
from voicereport.services.audio import StaticClipDevice  # noqa: E402
from voicereport.services.orchestrator import AppContext, ReportWorkflow  # noqa: E402

# ---------------------------------------------------------------------------
# Page config (must be first Streamlit call)
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="voicereport",
    page_icon="\U0001f399\ufe0f",
    layout="wide",
)

_settings = get_settings()
logging.basicConfig(level=_settings.log_level)

# ---------------------------------------------------------------------------
# Session state defaults
# ---------------------------------------------------------------------------
# Async clients and the DB engine are bound to one event loop, so each
# browser session keeps its own loop alive across reruns.
if "loop" not in st.session_state:
    st.session_state.loop = asyncio.new_event_loop()
    st.session_state.device = StaticClipDevice()
    st.session_state.workflow = ReportWorkflow(
        AppContext.create(device=st.session_state.device, settings=_settings)
    )
    st.session_state.last_clip_digest = None
    st.session_state.loop.run_until_complete(st.session_state.workflow.startup())


def _run(coro):
    return st.session_state.loop.run_until_complete(coro)


workflow: ReportWorkflow = st.session_state.workflow
device: StaticClipDevice = st.session_state.device
ctx = workflow.context
configuration = ctx.configuration
store = ctx.store

# ---------------------------------------------------------------------------
# Sidebar: settings, sessions
# ---------------------------------------------------------------------------
with st.sidebar:
    st.title("\U0001f399\ufe0f voicereport")

    with st.expander("Settings", expanded=not configuration.bootstrapped):
        secret = st.text_input("Password", type="password", value=configuration.secret)
        name = st.text_input("Name", value=configuration.display_name)
        location = st.text_input("Location", value=configuration.display_location)
        if st.button("Save configuration", use_container_width=True):
            _run(workflow.save_configuration(secret, name, location))
            st.rerun()

    if configuration.bootstrapped and configuration.authorized_identities:
        options = configuration.authorized_identities
        labels = [f"{i.name} ({i.location})" for i in options]
        choice = st.selectbox("Submit as", range(len(options)), format_func=labels.__getitem__)
        if st.button("Confirm identity", use_container_width=True):
            workflow.confirm_identity(options[choice].name, options[choice].location)
            st.rerun()

    st.divider()
    if st.button("New chat", use_container_width=True):
        workflow.new_session()
        st.rerun()

    st.caption("Recent chats")
    for session in store.sessions:
        label = session.title + (" ✓" if session.completed else "")
        kind = "primary" if session.id == store.current_session_id else "secondary"
        if st.button(label, key=f"session-{session.id}", type=kind, use_container_width=True):
            workflow.select_session(session.id)
            st.rerun()

# ---------------------------------------------------------------------------
# Notice
# ---------------------------------------------------------------------------
notice = workflow.current_notice()
if notice is not None:
    if notice.kind == NoticeKind.error:
        st.error(notice.text)
    elif notice.kind == NoticeKind.success:
        st.success(notice.text)
    else:
        st.info(notice.text)

# ---------------------------------------------------------------------------
# Chat history
# ---------------------------------------------------------------------------
for entry in ctx.chat_log.entries:
    with st.chat_message("user" if entry.role == ChatRole.submitter else "assistant"):
        st.write(entry.content)

# ---------------------------------------------------------------------------
# Record -> transcribe
# ---------------------------------------------------------------------------
audio = st.audio_input("Record")
if audio is not None:
    data = audio.getvalue()
    digest = hashlib.sha256(data).hexdigest()
    if digest != st.session_state.last_clip_digest:
        st.session_state.last_clip_digest = digest
        device.load(data, mime_type=audio.type or "audio/wav", filename=audio.name or "audio.wav")
        if _run(workflow.start_recording()):
            _run(workflow.stop_recording())

if ctx.recorder.pending_clip is not None:
    transcribe_col, discard_col = st.columns(2)
    if transcribe_col.button("Transcribe", disabled=not configuration.bootstrapped or workflow.busy):
        with st.spinner("Transcribing..."):
            _run(workflow.transcribe_pending())
        st.rerun()
    if discard_col.button("Discard recording", disabled=workflow.busy):
        workflow.discard_recording()
        st.rerun()

# ---------------------------------------------------------------------------
# Edit + submit
# ---------------------------------------------------------------------------
if configuration.bootstrapped and configuration.valid_sheets:
    sheets = configuration.valid_sheets
    index = sheets.index(configuration.selected_sheet) if configuration.selected_sheet in sheets else 0
    sheet = st.selectbox("Sheet", sheets, index=index)
    if sheet != configuration.selected_sheet:
        workflow.select_sheet(sheet)

edited = st.text_area("Transcription", value=store.editable_text, height=240)
if edited != store.editable_text:
    workflow.edit_text(edited)

if st.button("Submit", type="primary", disabled=not configuration.bootstrapped or workflow.busy):
    with st.spinner("Updating sheet..."):
        _run(workflow.submit())
    st.rerun()
