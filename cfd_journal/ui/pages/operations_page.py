# cfd_journal/ui/pages/operations_page.py
"""Operations page - open, add, close, delete and correct positions."""

import pandas as pd
import streamlit as st
from sqlmodel import Session

from cfd_journal.db.repository import JournalRepository
from cfd_journal.domain.models import PositionStatus, TradeType
from cfd_journal.domain.timeutils import to_local
from cfd_journal.errors import JournalError
from cfd_journal.ui.helpers.current_context import (
    get_lifecycle,
    report_timezone,
    selected_account_id,
)


def render(session: Session):
    """Render operations page."""
    st.subheader("Operations")

    lifecycle = get_lifecycle(session)
    accounts = lifecycle.list_accounts()
    if not accounts:
        st.info("Create an account first.")
        return

    render_open_form(lifecycle, accounts)
    st.divider()

    snapshots = lifecycle.list_snapshots(account_id=selected_account_id())
    if not snapshots:
        st.info("No operations yet.")
        return

    tz = report_timezone()

    status_filter = st.multiselect("Status", ["open", "closed"], default=["open", "closed"])
    rows = []
    for s in snapshots:
        if status_filter and s.status.value not in status_filter:
            continue
        rows.append({
            "Symbol": s.symbol,
            "Type": s.trade_type.value if s.trade_type else "?",
            "Status": s.status.value + (" (partial)" if s.is_partially_closed else ""),
            "Opened": to_local(s.open_at, tz).strftime("%Y-%m-%d %H:%M"),
            "Closed": to_local(s.closed_at, tz).strftime("%Y-%m-%d %H:%M") if s.closed_at else "",
            "Qty": s.net_quantity if s.status is PositionStatus.OPEN else s.original_quantity,
            "Open Price": s.open_price,
            "Close Price": s.close_price,
            "Open Fee": s.fees.open,
            "Close Fee": s.fees.close,
            "Night Fee": s.fees.night,
            "Realized": s.realized_pnl,
            "Unrealized": s.unrealized_pnl,
            "P&L": s.pnl,
        })
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

    labels = {
        s.position_id: f"{s.symbol} {s.trade_type.value if s.trade_type else ''} "
                       f"({s.status.value}) opened {s.open_at:%Y-%m-%d}"
        for s in snapshots
    }
    position_id = st.selectbox("Select operation", list(labels), format_func=lambda i: labels[i])
    selected = next(s for s in snapshots if s.position_id == position_id)

    if selected.status is PositionStatus.OPEN:
        render_position_actions(lifecycle, selected)

    render_fills(session, position_id)

    if st.button("🗑️ Delete operation", key="delete_op"):
        try:
            lifecycle.delete_position(position_id)
            st.success("Operation deleted")
            st.rerun()
        except JournalError as e:
            st.error(str(e))


def render_open_form(lifecycle, accounts):
    with st.form("open_operation"):
        st.write("**Open new operation**")
        col1, col2, col3 = st.columns(3)
        names = {a.id: a.name for a in accounts}
        account_id = col1.selectbox("Account", list(names), format_func=lambda i: names[i])
        ticker = col2.text_input("Symbol")
        trade_type = col3.selectbox("Type", [TradeType.LONG.value, TradeType.SHORT.value])

        col1, col2 = st.columns(2)
        quantity = col1.number_input("Quantity", min_value=0.0, step=1.0)
        price = col2.number_input("Open price", min_value=0.0, step=0.01)

        if st.form_submit_button("Open"):
            try:
                snap = lifecycle.open_position(account_id, ticker, trade_type, quantity, price)
                st.success(f"Opened {snap.symbol} (open fee ${snap.fees.open:.2f})")
                st.rerun()
            except JournalError as e:
                st.error(str(e))


def render_position_actions(lifecycle, snapshot):
    col1, col2 = st.columns(2)

    with col1:
        st.write("**Close**")
        close_price = st.number_input("Close price", min_value=0.0, step=0.01, key="op_close_price")
        pct = st.number_input("Close %", min_value=0.01, max_value=100.0, value=100.0, key="op_close_pct")
        if st.button("Close position", key="op_close_btn"):
            try:
                lifecycle.close_position(snapshot.position_id, close_price, pct)
                st.success("Position updated")
                st.rerun()
            except JournalError as e:
                st.error(str(e))

    with col2:
        st.write("**Add to position**")
        qty = st.number_input("Quantity", min_value=0.0, step=1.0, key="op_add_qty")
        price = st.number_input("Price", min_value=0.0, step=0.01, key="op_add_price")
        if st.button("Add", key="op_add_btn"):
            try:
                lifecycle.add_to_position(snapshot.position_id, qty, price)
                st.success("Fill added")
                st.rerun()
            except JournalError as e:
                st.error(str(e))


def render_fills(session: Session, position_id: str):
    repo = JournalRepository(session)
    fills = repo.list_fills(position_id)

    with st.expander(f"Fills ({len(fills)})"):
        st.dataframe(
            pd.DataFrame([
                {
                    "Side": f.side.value,
                    "Qty": f.quantity,
                    "Price": f.price,
                    "Open Fee": f.open_fee,
                    "Close Fee": f.close_fee,
                    "Night Fee": f.night_fee,
                    "Time": f.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                }
                for f in fills
            ]),
            use_container_width=True,
            hide_index=True,
        )

        st.caption("Correction bypasses position rules; values are stored as entered.")
        fill_ids = [f.id for f in fills]
        fill_id = st.selectbox("Fill to correct", fill_ids, key="fix_fill")
        fill = next(f for f in fills if f.id == fill_id)
        col1, col2, col3 = st.columns(3)
        quantity = col1.number_input("Qty", value=float(fill.quantity), key="fix_qty")
        price = col2.number_input("Price", value=float(fill.price), key="fix_price")
        night_fee = col3.number_input("Night fee", value=float(fill.night_fee), key="fix_night")
        if st.button("Save correction", key="fix_save"):
            try:
                with repo.transaction():
                    repo.update_fill(fill_id, quantity=quantity, price=price, night_fee=night_fee)
                st.success("Fill corrected")
                st.rerun()
            except JournalError as e:
                st.error(str(e))
