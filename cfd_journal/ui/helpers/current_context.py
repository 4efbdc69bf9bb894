# cfd_journal/ui/helpers/current_context.py
"""Function(s) to expose current runtime context"""

import streamlit as st
from sqlmodel import Session

from cfd_journal.db.repository import JournalRepository
from cfd_journal.domain.lifecycle import PositionLifecycle


def get_lifecycle(session: Session) -> PositionLifecycle:
    return PositionLifecycle(
        JournalRepository(session),
        report_timezone=st.session_state.get("report_timezone"),
    )


def selected_account_id():
    """Account filter chosen in the sidebar, None meaning all accounts."""
    return st.session_state.get("account_id")


def report_timezone() -> str:
    return st.session_state.get("report_timezone", "UTC")
