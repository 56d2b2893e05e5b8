"""Terminal formatting for run summaries, task statuses and script errors."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pipescript.script.tokens import Position

EMPTY = "-"

STATUS_COLOR_MAP = {
    "success": "green",
    "failure": "red",
    "running": "yellow",
    "pending": "white",
    "skipped": "bright_black",
}


def utc_now() -> str:
    """Current UTC time as stored in the history database, e.g. ``2024-03-01T10:00:00Z``."""

    return datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse the ``...Z`` timestamps written by the history store; naive values are UTC."""

    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: Optional[str]) -> str:
    if not value:
        return EMPTY
    parsed = parse_timestamp(value)
    if parsed is None:
        return value
    return parsed.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_elapsed(delta: timedelta) -> str:
    total = int(delta.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {seconds:02d}s"
    if minutes:
        return f"{minutes}m {seconds:02d}s"
    return f"{seconds}s"


def format_duration(start: Optional[str], end: Optional[str]) -> str:
    """Elapsed time between two stored timestamps, ``-`` when unknown."""

    started = parse_timestamp(start)
    finished = parse_timestamp(end)
    if started is None or finished is None or finished < started:
        return EMPTY
    return format_elapsed(finished - started)


def status_color(status: Optional[str]) -> str:
    return STATUS_COLOR_MAP.get((status or "").lower(), "white")


def humanize_status(status: Optional[str]) -> str:
    if not status:
        return "Unknown"
    return status.replace("_", " ").capitalize()


def source_excerpt(source: str, position: Optional[Position]) -> Optional[str]:
    """Return ``"  line|column   text"`` for the source line at ``position``."""

    if position is None or position.line <= 0:
        return None
    text = position.source_line(source)
    if not text:
        return None
    return f"  {position.line}|{position.column}   {text.strip()}"


__all__ = [
    "EMPTY",
    "STATUS_COLOR_MAP",
    "format_duration",
    "format_elapsed",
    "format_timestamp",
    "humanize_status",
    "parse_timestamp",
    "source_excerpt",
    "status_color",
    "utc_now",
]
