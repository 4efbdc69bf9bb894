# cfd_journal/ui/pages/dashboard_page.py
"""Dashboard page - equity overview, open positions and watchlist."""

import pandas as pd
import streamlit as st
from sqlmodel import Session

from cfd_journal.domain.metrics import MetricsCalculator, closed_only
from cfd_journal.domain.models import PositionStatus
from cfd_journal.errors import JournalError
from cfd_journal.ui.helpers.current_context import get_lifecycle, selected_account_id


def render(session: Session):
    """Render dashboard page."""
    st.subheader("Dashboard")

    lifecycle = get_lifecycle(session)
    account_id = selected_account_id()

    accounts = lifecycle.list_accounts()
    if account_id:
        accounts = [a for a in accounts if a.id == account_id]
    snapshots = lifecycle.list_snapshots(account_id=account_id)

    overview = MetricsCalculator.portfolio_overview(accounts, snapshots)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Current Equity", f"${overview['current_equity']:,.2f}")
    col2.metric("Realized P&L", f"${overview['realized_pnl']:,.2f}")
    col3.metric("Unrealized P&L", f"${overview['unrealized_pnl']:,.2f}")
    col4.metric("Win Rate", f"{overview['win_rate']:.1f}%")

    st.divider()
    st.subheader("Open Positions")

    open_positions = [s for s in snapshots if s.status is PositionStatus.OPEN]
    if not open_positions:
        st.info("No open positions.")
    else:
        rows = []
        for s in open_positions:
            rows.append({
                "Symbol": s.symbol,
                "Type": s.trade_type.value if s.trade_type else "?",
                "Qty": s.net_quantity,
                "Open Price": s.open_price,
                "Latest": s.latest_price,
                "Breakeven": s.breakeven_price,
                "Fees": s.fees.total,
                "P&L": s.pnl,
                "Partial": "yes" if s.is_partially_closed else "",
            })
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

        with st.expander("Close a position"):
            labels = {
                s.position_id: f"{s.symbol} {s.trade_type.value if s.trade_type else ''} x{s.net_quantity:g}"
                for s in open_positions
            }
            position_id = st.selectbox(
                "Position", list(labels), format_func=lambda i: labels[i], key="dash_close_pos"
            )
            close_price = st.number_input("Close price", min_value=0.0, step=0.01, key="dash_close_price")
            pct = st.slider("Close percentage", 1, 100, 100, key="dash_close_pct")
            if st.button("Close", key="dash_close_btn"):
                try:
                    lifecycle.close_position(position_id, close_price, pct)
                    st.success("Position updated")
                    st.rerun()
                except JournalError as e:
                    st.error(str(e))

    st.divider()
    col1, col2 = st.columns(2)

    with col1:
        st.subheader("Watchlist")
        watchlist = lifecycle.watchlist()
        if watchlist:
            st.dataframe(
                pd.DataFrame(watchlist)[["ticker", "name", "latest_price", "price_updated_at"]],
                use_container_width=True,
                hide_index=True,
            )
        else:
            st.info("No symbols tracked yet.")

    with col2:
        st.subheader("Recent Closed Trades")
        recent = sorted(closed_only(snapshots), key=lambda s: s.closed_at, reverse=True)[:5]
        if recent:
            st.dataframe(
                pd.DataFrame([
                    {
                        "Symbol": s.symbol,
                        "Closed": s.closed_at.strftime("%Y-%m-%d %H:%M"),
                        "P&L": s.pnl,
                    }
                    for s in recent
                ]),
                use_container_width=True,
                hide_index=True,
            )
        else:
            st.info("No closed trades yet.")
