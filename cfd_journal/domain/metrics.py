# cfd_journal/domain/metrics.py
"""Portfolio metrics and reporting calculations over position snapshots."""

import calendar
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

import pandas as pd

from cfd_journal.domain.models import AccountInfo, PositionSnapshot, PositionStatus
from cfd_journal.domain.timeutils import local_date, to_local, utc_now

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def closed_only(snapshots: Iterable[PositionSnapshot]) -> List[PositionSnapshot]:
    return [
        s for s in snapshots
        if s.status is PositionStatus.CLOSED and s.closed_at is not None
    ]


def _win_rate(wins: int, total: int) -> float:
    return wins / total * 100 if total else 0.0


class MetricsCalculator:
    """Calculate trading metrics from closed (and open) position snapshots."""

    @staticmethod
    def performance_metrics(snapshots: Iterable[PositionSnapshot]) -> Dict:
        """
        Overall statistics of closed positions.

        win_rate is a percentage. average_loss is a magnitude; largest_loss
        keeps its sign. profit_factor is inf when there are wins and no losses.
        """
        closed = closed_only(snapshots)

        wins = [s.pnl for s in closed if s.pnl > 0]
        losses = [s.pnl for s in closed if s.pnl < 0]

        total_wins = sum(wins)
        total_losses = abs(sum(losses))
        total_pnl = sum(s.pnl for s in closed)
        total_trades = len(closed)

        average_win = total_wins / len(wins) if wins else 0.0
        average_loss = total_losses / len(losses) if losses else 0.0
        win_rate = _win_rate(len(wins), total_trades)

        if total_losses > 0:
            profit_factor = total_wins / total_losses
        elif total_wins > 0:
            profit_factor = float("inf")
        else:
            profit_factor = 0.0

        expectancy = 0.0
        if total_trades:
            expectancy = (win_rate / 100) * average_win - (1 - win_rate / 100) * average_loss

        curve = MetricsCalculator.equity_curve(closed)
        max_drawdown = float(curve["drawdown"].max()) if not curve.empty else 0.0

        return {
            "total_trades": total_trades,
            "winning_trades": len(wins),
            "losing_trades": len(losses),
            "win_rate": win_rate,
            "total_pnl": total_pnl,
            "average_win": average_win,
            "average_loss": average_loss,
            "profit_factor": profit_factor,
            "largest_win": max(wins) if wins else 0.0,
            "largest_loss": min(losses) if losses else 0.0,
            "average_trade": total_pnl / total_trades if total_trades else 0.0,
            "expectancy": expectancy,
            "max_drawdown": max_drawdown,
            "total_fees": sum(s.fees.total for s in closed),
        }

    @staticmethod
    def equity_curve(snapshots: Iterable[PositionSnapshot]) -> pd.DataFrame:
        """
        Cumulative closed P&L ordered by close time.

        Returns DataFrame with columns: closed_at, symbol, pnl, cumulative_pnl, peak, drawdown.
        The running peak starts at 0; drawdown = peak - cumulative_pnl.
        """
        closed = closed_only(snapshots)
        columns = ["closed_at", "symbol", "pnl", "cumulative_pnl", "peak", "drawdown"]
        if not closed:
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame(
            [{"closed_at": s.closed_at, "symbol": s.symbol, "pnl": s.pnl} for s in closed]
        )
        df = df.sort_values("closed_at", kind="stable").reset_index(drop=True)
        df["cumulative_pnl"] = df["pnl"].cumsum()
        df["peak"] = df["cumulative_pnl"].cummax().clip(lower=0.0)
        df["drawdown"] = df["peak"] - df["cumulative_pnl"]
        return df[columns]

    @staticmethod
    def daily_metrics(
        snapshots: Iterable[PositionSnapshot],
        day: date,
        report_timezone: Optional[str] = None,
    ) -> Dict:
        """Summary of positions closed on `day` (calendar date in report timezone)."""
        day_positions = [
            s for s in closed_only(snapshots)
            if local_date(s.closed_at, report_timezone) == day
        ]
        return MetricsCalculator._summarize_day(day, day_positions)

    @staticmethod
    def calendar_grid(
        snapshots: Iterable[PositionSnapshot],
        year: int,
        month: int,
        report_timezone: Optional[str] = None,
    ) -> List[Optional[Dict]]:
        """One daily summary per day of month; None for days without closes."""
        by_day = defaultdict(list)
        for s in closed_only(snapshots):
            by_day[local_date(s.closed_at, report_timezone)].append(s)

        days_in_month = calendar.monthrange(year, month)[1]
        grid = []
        for day_num in range(1, days_in_month + 1):
            d = date(year, month, day_num)
            items = by_day.get(d)
            grid.append(MetricsCalculator._summarize_day(d, items) if items else None)
        return grid

    @staticmethod
    def _summarize_day(day: date, positions: List[PositionSnapshot]) -> Dict:
        win_count = len([s for s in positions if s.pnl > 0])
        loss_count = len([s for s in positions if s.pnl < 0])
        return {
            "date": day.isoformat(),
            "pnl": sum(s.pnl for s in positions),
            "trade_count": len(positions),
            "win_count": win_count,
            "loss_count": loss_count,
            "win_rate": _win_rate(win_count, len(positions)),
            "volume": sum(s.original_quantity * s.open_price for s in positions),
            "fees": sum(s.fees.total for s in positions),
        }

    @staticmethod
    def year_summary(
        snapshots: Iterable[PositionSnapshot],
        year: int,
        report_timezone: Optional[str] = None,
    ) -> pd.DataFrame:
        """Twelve month rows of closed-position results for `year`."""
        rows = {
            m: {"month": m, "month_name": calendar.month_abbr[m], "pnl": 0.0,
                "trade_count": 0, "win_count": 0, "fees": 0.0}
            for m in range(1, 13)
        }
        for s in closed_only(snapshots):
            closed_local = to_local(s.closed_at, report_timezone)
            if closed_local.year != year:
                continue
            row = rows[closed_local.month]
            row["pnl"] += s.pnl
            row["trade_count"] += 1
            row["fees"] += s.fees.total
            if s.pnl > 0:
                row["win_count"] += 1

        df = pd.DataFrame(list(rows.values()))
        df["win_rate"] = [
            _win_rate(w, t) for w, t in zip(df["win_count"], df["trade_count"])
        ]
        return df

    @staticmethod
    def time_based_metrics(
        snapshots: Iterable[PositionSnapshot],
        report_timezone: Optional[str] = None,
    ) -> Dict[str, pd.DataFrame]:
        """
        P&L bucketed by close hour (0-23) and close weekday (0=Sunday).

        Returns {"hourly": DataFrame[hour, pnl, trade_count],
                 "weekday": DataFrame[weekday, day, pnl, trade_count, win_rate]}
        """
        hourly = pd.DataFrame({"hour": range(24), "pnl": 0.0, "trade_count": 0})
        weekday = pd.DataFrame({
            "weekday": range(7),
            "day": WEEKDAY_NAMES,
            "pnl": 0.0,
            "trade_count": 0,
            "win_count": 0,
        })

        for s in closed_only(snapshots):
            closed_local = to_local(s.closed_at, report_timezone)
            hour = closed_local.hour
            day_idx = (closed_local.weekday() + 1) % 7  # Monday=0 -> Sunday-first

            hourly.loc[hour, "pnl"] += s.pnl
            hourly.loc[hour, "trade_count"] += 1
            weekday.loc[day_idx, "pnl"] += s.pnl
            weekday.loc[day_idx, "trade_count"] += 1
            if s.pnl > 0:
                weekday.loc[day_idx, "win_count"] += 1

        weekday["win_rate"] = [
            _win_rate(w, t) for w, t in zip(weekday["win_count"], weekday["trade_count"])
        ]
        return {
            "hourly": hourly,
            "weekday": weekday[["weekday", "day", "pnl", "trade_count", "win_rate"]],
        }

    @staticmethod
    def monthly_pnl_series(
        snapshots: Iterable[PositionSnapshot],
        report_timezone: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> pd.DataFrame:
        """
        Continuous monthly buckets from the earliest open to the latest close.

        Open positions extend the range to `now`. Months without closes are
        zero-filled. Columns: month (YYYY-MM), label, pnl, trade_count, win_rate.
        """
        snapshots = list(snapshots)
        columns = ["month", "label", "pnl", "trade_count", "win_rate"]
        if not snapshots:
            return pd.DataFrame(columns=columns)

        instants = [s.open_at for s in snapshots]
        instants += [s.closed_at for s in snapshots if s.closed_at is not None]
        if any(s.status is PositionStatus.OPEN for s in snapshots):
            instants.append(now or utc_now())
        local = [to_local(ts, report_timezone) for ts in instants]

        start = pd.Period(year=min(local).year, month=min(local).month, freq="M")
        end = pd.Period(year=max(local).year, month=max(local).month, freq="M")
        months = pd.period_range(start, end, freq="M")

        buckets = {p.strftime("%Y-%m"): {"pnl": 0.0, "trade_count": 0, "win_count": 0} for p in months}
        for s in closed_only(snapshots):
            key = to_local(s.closed_at, report_timezone).strftime("%Y-%m")
            bucket = buckets.get(key)
            if bucket is None:
                continue
            bucket["pnl"] += s.pnl
            bucket["trade_count"] += 1
            if s.pnl > 0:
                bucket["win_count"] += 1

        rows = []
        for p in months:
            b = buckets[p.strftime("%Y-%m")]
            rows.append({
                "month": p.strftime("%Y-%m"),
                "label": p.strftime("%b %Y"),
                "pnl": b["pnl"],
                "trade_count": b["trade_count"],
                "win_rate": _win_rate(b["win_count"], b["trade_count"]),
            })
        return pd.DataFrame(rows, columns=columns)

    @staticmethod
    def symbol_distribution(snapshots: Iterable[PositionSnapshot]) -> pd.DataFrame:
        """Per-symbol trade count, P&L and win rate, most traded first."""
        closed = closed_only(snapshots)
        columns = ["symbol", "trade_count", "pnl", "win_count", "win_rate"]
        if not closed:
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame(
            [{"symbol": s.symbol, "pnl": s.pnl, "is_win": 1 if s.pnl > 0 else 0} for s in closed]
        )
        out = (
            df.groupby("symbol", as_index=False)
            .agg(
                trade_count=("pnl", "count"),
                pnl=("pnl", "sum"),
                win_count=("is_win", "sum"),
            )
        )
        out["win_rate"] = out["win_count"] / out["trade_count"] * 100
        out = out.sort_values(["trade_count", "symbol"], ascending=[False, True], kind="stable")
        return out[columns].reset_index(drop=True)

    @staticmethod
    def portfolio_overview(
        accounts: Iterable[AccountInfo],
        snapshots: Iterable[PositionSnapshot],
    ) -> Dict:
        """Equity view: starting balances plus realized and unrealized P&L."""
        snapshots = list(snapshots)
        closed = closed_only(snapshots)
        open_positions = [s for s in snapshots if s.status is PositionStatus.OPEN]

        starting_balance = sum(a.starting_balance for a in accounts)
        realized = sum(s.pnl for s in closed)
        # Partial closes already realized part of an open position's P&L
        realized += sum(s.realized_pnl for s in open_positions)
        unrealized = sum(s.unrealized_pnl for s in open_positions)
        wins = len([s for s in closed if s.pnl > 0])

        return {
            "starting_balance": starting_balance,
            "realized_pnl": realized,
            "unrealized_pnl": unrealized,
            "current_equity": starting_balance + realized + unrealized,
            "open_positions": len(open_positions),
            "closed_positions": len(closed),
            "win_rate": _win_rate(wins, len(closed)),
        }
