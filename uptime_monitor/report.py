"""Rendering of console lines and Discord notification messages."""

from __future__ import annotations

from datetime import datetime, tzinfo
from enum import Enum
from typing import Sequence

from .changes import Transition, TransitionKind
from .checks import Outcome


class ReportMode(str, Enum):
    CHANGES = "changes"
    FULL = "full"


def format_timestamp(now: datetime | None = None, tz: tzinfo | None = None) -> str:
    """``MM/DD/YYYY, HH:MM:SS`` in 24h clock, in ``tz`` when given."""
    if now is None:
        now = datetime.now(tz)
    elif tz is not None:
        now = now.astimezone(tz)
    return now.strftime("%m/%d/%Y, %H:%M:%S")


def _format_ms(value: int | None) -> str:
    return "n/a" if value is None else f"{value} ms"


def _up_detail(outcome: Outcome) -> str:
    detail = f"({_format_ms(outcome.elapsed_ms)}, status={outcome.status_code})"
    if outcome.slow:
        detail += " 🐢 slow"
    return detail


def _down_detail(outcome: Outcome) -> str:
    return f"(status={outcome.status_code}, error={outcome.error or 'n/a'})"


def format_outcome_line(outcome: Outcome) -> str:
    """One console line per checked target."""
    if not outcome.up:
        return f"❌ DOWN: **{outcome.name}** - {outcome.url} {_down_detail(outcome)}"
    return f"✅ OK: **{outcome.name}** - {outcome.url} {_up_detail(outcome)}"


def _format_transition_line(transition: Transition) -> str:
    o = transition.outcome
    if transition.kind is TransitionKind.RECOVERED:
        return f"✅ **{o.name}** recovered - {o.url} {_up_detail(o)}"
    verb = "went down" if transition.kind is TransitionKind.WENT_DOWN else "is down"
    return f"❌ **{o.name}** {verb} - {o.url} {_down_detail(o)}"


def _build_changes_message(transitions: Sequence[Transition], *, timestamp: str, timezone_label: str) -> str:
    recovered = [t for t in transitions if t.kind is TransitionKind.RECOVERED]
    down = [t for t in transitions if t.is_down]

    lines = ["🔔 **SERVICE STATUS CHANGES**", ""]
    if recovered:
        lines.append("🟢 **Recovered**")
        lines.extend(_format_transition_line(t) for t in recovered)
    if down:
        if recovered:
            lines.append("")
        lines.append("🔴 **Down**")
        lines.extend(_format_transition_line(t) for t in down)
    if not transitions:
        lines.append("No changes detected")

    lines.extend(["", f"⏰ **{timestamp} {timezone_label}**"])
    return "\n".join(lines).strip()


def _build_full_message(
    outcomes: Sequence[Outcome],
    *,
    timestamp: str,
    duration_ms: int,
    timezone_label: str,
) -> str:
    up = [o for o in outcomes if o.up]
    down = [o for o in outcomes if not o.up]

    lines = ["📊 **SERVICE STATUS UPDATES**", ""]
    if up:
        lines.append("🟢 **Services Up**")
        lines.extend(f"✅ **{o.name}** - {o.url} {_up_detail(o)}" for o in up)
    if down:
        if up:
            lines.append("")
        lines.append("🔴 **Services Down**")
        lines.extend(f"❌ **{o.name}** - {o.url} {_down_detail(o)}" for o in down)
    if not outcomes:
        lines.append("No services configured")

    lines.extend(["", f"⏰ **{timestamp} {timezone_label}** | 🕐 Execution time: {duration_ms}ms"])
    return "\n".join(lines).strip()


def build_message(
    outcomes: Sequence[Outcome],
    transitions: Sequence[Transition],
    mode: ReportMode,
    *,
    timestamp: str,
    duration_ms: int = 0,
    timezone_label: str = "ART",
) -> str:
    if mode is ReportMode.FULL:
        return _build_full_message(
            outcomes,
            timestamp=timestamp,
            duration_ms=duration_ms,
            timezone_label=timezone_label,
        )
    return _build_changes_message(transitions, timestamp=timestamp, timezone_label=timezone_label)


def build_failure_message(error: BaseException | str, *, timestamp: str, timezone_label: str = "ART") -> str:
    if isinstance(error, BaseException):
        text = str(error) or type(error).__name__
    else:
        text = error
    return f"❌ **Monitor failed**: {text}\n\n⏰ **{timestamp} {timezone_label}**"
