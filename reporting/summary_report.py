"""
Plain-text rendering of an analysis session: one-line status, portfolio
summary block and the ranked suggestion list.
"""
from __future__ import annotations

import os

from session.analysis_session import SessionState, SessionStatus


def _fmt(v: object, sign: bool = False, decimals: int = 2, prefix: str = "", suffix: str = "") -> str:
    """Format a numeric value, returning 'N/A' for missing/nan/inf."""
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return "N/A"
    if v != v or abs(v) == float("inf"):  # nan or inf
        return "N/A"
    fmt = f"{'+' if sign else ''},.{decimals}f"
    return f"{prefix}{v:{fmt}}{suffix}"


def status_message(status: SessionStatus) -> str:
    state = status.state
    if state == SessionState.IDLE:
        return "Status: Idle. Stale results discarded." if status.stale else "Status: Idle."
    if state == SessionState.LOADING:
        return "Status: Loading portfolio data..."
    if state == SessionState.READY:
        return "Status: Portfolio data loaded."
    if state == SessionState.ANALYZING:
        return "Status: Analysis in progress..."
    if state == SessionState.COMPLETE:
        if not status.suggestions:
            return "Status: Analysis complete. Portfolio is tax-efficient, no suggestions."
        return f"Status: Analysis complete. {len(status.suggestions)} suggestion(s) identified."
    return f"Status: Analysis failed ({status.error})"


def format_report(status: SessionStatus) -> str:
    lines = [
        "=" * 64,
        "  TAX OPTIMIZATION SUMMARY",
        "=" * 64,
        f"  {status_message(status)}",
    ]
    if status.holdings_version is not None:
        lines.append(f"  Holdings version:      {status.holdings_version}")
    if status.stale:
        lines.append("  ** Results below are STALE and must not be traded on **")

    summary = status.summary
    if summary is not None:
        lines += [
            "",
            f"  Market value:          {_fmt(summary.total_market_value, prefix='$')}",
            f"  Cost basis:            {_fmt(summary.total_cost_basis, prefix='$')}",
            f"  Unrealized P/L:        {_fmt(summary.net_unrealized_pl, sign=True, prefix='$')}",
            f"  Shares held:           {summary.total_shares:,}",
            f"  Risk score:            {_fmt(summary.risk_score)}",
        ]
        if summary.sector_exposure:
            lines += ["", "  --- Sector exposure ---"]
            for sector, pct in sorted(summary.sector_exposure.items(), key=lambda kv: -kv[1]):
                lines.append(f"  {sector.value:<22} {_fmt(pct, decimals=1, suffix='%'):>8}")
        if summary.unresolved:
            lines += ["", f"  Skipped (unknown instrument): {', '.join(summary.unresolved)}"]

    if status.suggestions:
        lines += ["", "  --- Suggestions (most urgent first) ---"]
        for rank, s in enumerate(status.suggestions, start=1):
            lines.append(
                f"  {rank:>2}. [P{s.priority}] {s.ticker:<8} sell {s.shares_to_sell:>6,}  "
                f"{_fmt(s.realized_gain_loss, sign=True, prefix='$'):>14}  "
                f"{s.strategy.value:<20} conf {s.confidence:.2f}"
            )
            lines.append(f"      {s.rationale}")

    lines.append("=" * 64)
    return "\n".join(lines)


def write_summary_report(status: SessionStatus, output_path: str = "reports/tax_summary.txt") -> None:
    """Write format_report(status) to output_path."""
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(format_report(status) + "\n")
    print(f"\nTax summary written to {output_path}")
