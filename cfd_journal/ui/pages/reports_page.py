# cfd_journal/ui/pages/reports_page.py
"""Reports page - performance, equity curve, time buckets and symbols."""

import math

import plotly.express as px
import streamlit as st
from sqlmodel import Session

from cfd_journal.domain.metrics import MetricsCalculator
from cfd_journal.ui.helpers.current_context import (
    get_lifecycle,
    report_timezone,
    selected_account_id,
)


def render(session: Session):
    """Render reports page."""
    st.subheader("Reports")

    lifecycle = get_lifecycle(session)
    snapshots = lifecycle.list_snapshots(account_id=selected_account_id())

    report_type = st.selectbox(
        "Select Report",
        ["Overview", "Equity Curve", "Monthly P&L", "Time of Day (Close)", "Symbols"],
    )

    if report_type == "Overview":
        render_overview(lifecycle, snapshots)
    elif report_type == "Equity Curve":
        render_equity_curve(snapshots)
    elif report_type == "Monthly P&L":
        render_monthly(snapshots)
    elif report_type == "Time of Day (Close)":
        render_time_based(snapshots)
    elif report_type == "Symbols":
        render_symbols(snapshots)


def render_overview(lifecycle, snapshots):
    """Render overview report."""
    stats = lifecycle.get_portfolio_metrics(snapshots)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Closed Trades", stats["total_trades"])
    col2.metric("Win Rate", f"{stats['win_rate']:.1f}%")
    pf = stats["profit_factor"]
    col3.metric("Profit Factor", "∞" if math.isinf(pf) else f"{pf:.2f}")
    col4.metric("Total P&L", f"${stats['total_pnl']:.2f}")

    st.divider()

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Avg Win", f"${stats['average_win']:.2f}")
        st.metric("Avg Loss", f"${stats['average_loss']:.2f}")
    with col2:
        st.metric("Largest Win", f"${stats['largest_win']:.2f}")
        st.metric("Largest Loss", f"${stats['largest_loss']:.2f}")
    with col3:
        st.metric("Expectancy", f"${stats['expectancy']:.2f}")
        st.metric("Max Drawdown", f"${stats['max_drawdown']:.2f}")

    st.metric("Total Fees", f"${stats['total_fees']:.2f}")


def render_equity_curve(snapshots):
    """Render equity curve chart."""
    curve = MetricsCalculator.equity_curve(snapshots)

    if curve.empty:
        st.info("No closed trades yet.")
        return

    fig = px.line(
        curve,
        x="closed_at",
        y="cumulative_pnl",
        title="Cumulative P&L",
        labels={"cumulative_pnl": "Cumulative P&L ($)", "closed_at": "Closed"},
        markers=True,
    )
    st.plotly_chart(fig, use_container_width=True)

    fig_dd = px.area(
        curve,
        x="closed_at",
        y="drawdown",
        title="Drawdown",
        labels={"drawdown": "Drawdown ($)", "closed_at": "Closed"},
    )
    st.plotly_chart(fig_dd, use_container_width=True)


def render_monthly(snapshots):
    df = MetricsCalculator.monthly_pnl_series(snapshots, report_timezone=report_timezone())
    if df.empty:
        st.info("No operations yet.")
        return

    fig = px.bar(
        df,
        x="label",
        y="pnl",
        title="Monthly P&L",
        labels={"label": "Month", "pnl": "P&L ($)"},
        color="pnl",
        color_continuous_scale=["red", "green"],
    )
    st.plotly_chart(fig, use_container_width=True)
    st.dataframe(df, use_container_width=True, hide_index=True)


def render_time_based(snapshots):
    buckets = MetricsCalculator.time_based_metrics(snapshots, report_timezone=report_timezone())
    hourly = buckets["hourly"]
    weekday = buckets["weekday"]

    if hourly["trade_count"].sum() == 0:
        st.info("No closed trades yet.")
        return

    hourly = hourly.assign(hour_label=hourly["hour"].apply(lambda h: f"{h:02d}:00"))
    fig_hour = px.bar(
        hourly,
        x="hour_label",
        y="pnl",
        title="P&L by Close Hour",
        labels={"hour_label": "Close Hour", "pnl": "Total P&L ($)"},
        color="pnl",
        color_continuous_scale=["red", "green"],
    )
    st.plotly_chart(fig_hour, use_container_width=True)

    fig_day = px.bar(
        weekday,
        x="day",
        y="pnl",
        title="P&L by Weekday",
        labels={"day": "Weekday", "pnl": "Total P&L ($)"},
        color="pnl",
        color_continuous_scale=["red", "green"],
    )
    st.plotly_chart(fig_day, use_container_width=True)
    st.dataframe(weekday, use_container_width=True, hide_index=True)


def render_symbols(snapshots):
    df = MetricsCalculator.symbol_distribution(snapshots)
    if df.empty:
        st.info("No closed trades yet.")
        return

    fig = px.pie(df, names="symbol", values="trade_count", title="Trades by Symbol")
    st.plotly_chart(fig, use_container_width=True)

    display = df.copy()
    display["win_rate"] = display["win_rate"].apply(lambda x: f"{x:.1f}%")
    display["pnl"] = display["pnl"].apply(lambda x: f"${x:.2f}")
    st.dataframe(display, use_container_width=True, hide_index=True)
