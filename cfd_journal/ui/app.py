# cfd_journal/ui/app.py
"""Main Streamlit application."""

import logging

import streamlit as st

from cfd_journal import config
from cfd_journal.db.session import get_session, init_db
from cfd_journal.ui.helpers.current_context import get_lifecycle
from cfd_journal.ui.pages import (
    accounts_page,
    calendar_page,
    dashboard_page,
    operations_page,
    reports_page,
)

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Configure page
st.set_page_config(
    page_title="CFD Journal",
    page_icon="📈",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Initialize database
init_db()


def init_session_state():
    """Initialize Streamlit session state."""
    if "account_id" not in st.session_state:
        st.session_state.account_id = None
    if "report_timezone" not in st.session_state:
        st.session_state.report_timezone = config.REPORT_TIMEZONE


def main_app():
    """Render main application."""
    session = get_session()
    lifecycle = get_lifecycle(session)

    # Sidebar: account filter and settings
    with st.sidebar:
        st.title("⚙️ Settings")

        accounts = lifecycle.list_accounts()
        if not accounts:
            st.warning("No accounts yet. Create one on the Accounts page.")
            st.session_state.account_id = None
        else:
            options = [None] + [a.id for a in accounts]
            names = {a.id: a.name for a in accounts}
            st.session_state.account_id = st.selectbox(
                "Account",
                options,
                format_func=lambda i: "All accounts" if i is None else names[i],
            )

        st.subheader("Report Settings")
        zones = ["UTC", "Europe/London", "Europe/Madrid", "US/Eastern", "US/Pacific"]
        current = st.session_state.report_timezone
        if current not in zones:
            zones.insert(0, current)
        st.session_state.report_timezone = st.selectbox(
            "Report Timezone",
            zones,
            index=zones.index(current),
        )

    st.title("CFD Journal")

    page = st.selectbox(
        "Navigate",
        ["Dashboard", "Operations", "Accounts", "Calendar", "Reports"],
    )

    if page == "Dashboard":
        dashboard_page.render(session)
    elif page == "Operations":
        operations_page.render(session)
    elif page == "Accounts":
        accounts_page.render(session)
    elif page == "Calendar":
        calendar_page.render(session)
    elif page == "Reports":
        reports_page.render(session)

    session.close()


if __name__ == "__main__":
    init_session_state()
    main_app()
