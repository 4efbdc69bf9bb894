# cfd_journal/ui/pages/accounts_page.py
"""Accounts page - accounts, commission settings and symbol prices."""

import streamlit as st
from sqlmodel import Session

from cfd_journal import config
from cfd_journal.domain.models import CommissionRates
from cfd_journal.errors import JournalError
from cfd_journal.ui.helpers.current_context import get_lifecycle


def render(session: Session):
    """Render accounts page."""
    st.subheader("Accounts")

    lifecycle = get_lifecycle(session)

    with st.form("new_account"):
        st.write("**Add account**")
        col1, col2 = st.columns(2)
        name = col1.text_input("Name")
        balance = col2.number_input("Starting balance (USD)", min_value=0.0, step=100.0)
        col1, col2 = st.columns(2)
        open_close = col1.number_input(
            "Open/close commission %", 0.0, 100.0, config.DEFAULT_OPEN_CLOSE_COMMISSION_PCT
        )
        night = col2.number_input(
            "Night commission % (annual)", 0.0, 100.0, config.DEFAULT_NIGHT_COMMISSION_PCT
        )
        if st.form_submit_button("Create"):
            try:
                lifecycle.create_account(name, balance, CommissionRates(open_close, night))
                st.success(f"Account {name} created")
                st.rerun()
            except JournalError as e:
                st.error(str(e))

    st.divider()

    for account in lifecycle.list_accounts():
        with st.expander(f"{account.name} - ${account.starting_balance:,.2f}"):
            col1, col2 = st.columns(2)
            open_close = col1.number_input(
                "Open/close %", 0.0, 100.0, float(account.rates.open_close_pct),
                key=f"oc_{account.id}",
            )
            night = col2.number_input(
                "Night %", 0.0, 100.0, float(account.rates.night_pct),
                key=f"night_{account.id}",
            )
            col1, col2, col3 = st.columns(3)
            if col1.button("Save commissions", key=f"save_{account.id}"):
                try:
                    lifecycle.update_account_commissions(account.id, open_close, night)
                    st.success("Commission settings updated")
                except JournalError as e:
                    st.error(str(e))
            if col2.button("Deactivate", key=f"deact_{account.id}"):
                try:
                    lifecycle.deactivate_account(account.id)
                    st.success("Account deactivated")
                    st.rerun()
                except JournalError as e:
                    st.error(str(e))
            if col3.button("Delete account", key=f"del_{account.id}"):
                try:
                    lifecycle.delete_account(account.id)
                    st.success("Account deleted")
                    st.rerun()
                except JournalError as e:
                    st.error(str(e))

    st.divider()
    st.subheader("Symbols")

    symbols = lifecycle.watchlist()
    if not symbols:
        st.info("Symbols are created when you open an operation.")
        return

    names = {s["symbol_id"]: s["ticker"] for s in symbols}
    symbol_id = st.selectbox("Symbol", list(names), format_func=lambda i: names[i])
    col1, col2 = st.columns(2)
    price = col1.number_input("Latest price", min_value=0.0, step=0.01)
    if col1.button("Set price"):
        try:
            lifecycle.update_latest_price(symbol_id, price)
            st.success("Price updated")
            st.rerun()
        except JournalError as e:
            st.error(str(e))
    if col2.button("Deactivate symbol"):
        try:
            lifecycle.deactivate_symbol(symbol_id)
            st.success("Symbol deactivated")
            st.rerun()
        except JournalError as e:
            st.error(str(e))
