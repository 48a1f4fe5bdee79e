"""Relative-time and date stamps prefixed to freeform notes."""

from __future__ import annotations

from .clock import wall_datetime

NOTE_SEPARATOR = " -- "


def format_time_delta(reference: int, now: int) -> str:
    # both values must already share one epoch basis
    sign = "+" if now >= reference else "-"
    minutes_total = abs(now - reference) // 60
    hours, minutes = divmod(minutes_total, 60)
    return f"T{sign}{hours:02d}:{minutes:02d}"


def format_note_stamp(session_date: int, now: int) -> str:
    current = wall_datetime(now)
    clock = f"{current.hour:02d}{current.minute:02d}"
    if wall_datetime(session_date).date() == current.date():
        return clock
    return f"{current.month}-{current.day} {clock}"


def append_note(notes: str | None, prefix: str, body: str) -> str:
    return f"{notes or ''}\n{prefix}{NOTE_SEPARATOR}{body}"
