# cfd_journal/ui/pages/calendar_page.py
"""Calendar page - monthly P&L heatmap."""

import calendar

import streamlit as st
from sqlmodel import Session

from cfd_journal.domain.metrics import MetricsCalculator, closed_only
from cfd_journal.domain.models import PositionStatus
from cfd_journal.domain.timeutils import to_local
from cfd_journal.ui.helpers.current_context import (
    get_lifecycle,
    report_timezone,
    selected_account_id,
)


def render(session: Session):
    st.subheader("Calendar P&L")

    lifecycle = get_lifecycle(session)
    tz = report_timezone()
    snapshots = lifecycle.list_snapshots(
        account_id=selected_account_id(), status=PositionStatus.CLOSED
    )
    closed = closed_only(snapshots)

    if not closed:
        st.info("No closed operations yet.")
        return

    # Month options from close dates
    months = sorted({
        (to_local(s.closed_at, tz).year, to_local(s.closed_at, tz).month) for s in closed
    })
    year, month = st.selectbox(
        "Select Month",
        months,
        format_func=lambda ym: f"{ym[0]}-{ym[1]:02d}",
        index=len(months) - 1,  # default to most recent month
    )

    grid = MetricsCalculator.calendar_grid(snapshots, year, month, report_timezone=tz)
    by_day = {i + 1: cell for i, cell in enumerate(grid) if cell}

    # Month summary
    month_total = sum(cell["pnl"] for cell in by_day.values())
    trading_days = len(by_day)
    avg_per_day = (month_total / trading_days) if trading_days else 0.0

    st.write(f"### {calendar.month_name[month]} {year}")

    c1, c2, c3 = st.columns(3)
    c1.metric("Month P&L", f"${month_total:.2f}")
    c2.metric("Trading days", trading_days)
    c3.metric("Avg / day", f"${avg_per_day:.2f}")

    st.divider()

    # Sunday-first grid
    cal = calendar.Calendar(firstweekday=6).monthdayscalendar(year, month)

    cols = st.columns(7)
    for i, day_name in enumerate(["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]):
        cols[i].write(f"**{day_name}**")

    for week in cal:
        cols = st.columns(7)
        for i, day_num in enumerate(week):
            if day_num == 0:
                cols[i].write("")
                continue

            cell = by_day.get(day_num)
            if cell is None:
                cols[i].write(str(day_num))
                continue

            pnl = cell["pnl"]
            bg_color = "rgba(0, 128, 0, 0.25)" if pnl > 0 else "rgba(255, 0, 0, 0.25)" if pnl < 0 else "rgba(128, 128, 128, 0.25)"

            with cols[i]:
                st.markdown(
                    f"""
                    <div style="background-color: {bg_color}; padding: 10px; border-radius: 6px;">
                      <div style="font-weight: 500; text-align: left;">{day_num}</div>
                      <div style="font-weight: 700; font-size: 16px; text-align: center; margin-top: 4px;">${pnl:.2f}</div>
                      <div style="font-size: 12px; text-align: center;">{cell['trade_count']} trades · {cell['win_rate']:.0f}%</div>
                    </div>
                    """,
                    unsafe_allow_html=True,
                )

    st.divider()
    st.write(f"### {year} by month")
    st.dataframe(
        MetricsCalculator.year_summary(snapshots, year, report_timezone=tz),
        use_container_width=True,
        hide_index=True,
    )
    st.caption(f"Calendar days in {tz}")
