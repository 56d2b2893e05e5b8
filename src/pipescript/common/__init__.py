"""Shared helpers."""

from .formatting import (
    format_duration,
    format_timestamp,
    humanize_status,
    source_excerpt,
    status_color,
)

__all__ = [
    "format_duration",
    "format_timestamp",
    "humanize_status",
    "source_excerpt",
    "status_color",
]
