"""Text formatting for session tables, picker rows and previews."""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from ccsessions.date_utils import format_time_relative
from ccsessions.models import SessionRecord

if TYPE_CHECKING:
    from ccsessions.navigation import NavigationRow

CHILDREN_GLYPH = "▸"
FOCUSED_GLYPH = "●"
TITLE_GLYPH = "★"
_RULE = "─"


def normalize_summary(text: str, max_chars: int) -> str:
    """Collapse whitespace, drop leading markdown markers, truncate at a word."""
    normalized = " ".join((text or "").split())
    stripped = normalized.lstrip("#*").lstrip()
    if len(stripped) <= max_chars:
        return stripped

    truncated = stripped[:max_chars]
    break_point = truncated.rfind(" ")
    if break_point <= max_chars // 2:
        break_point = len(truncated)
    return f"{truncated[:break_point]}..."


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}..."


def format_session_desc(record: SessionRecord, max_chars: int) -> str:
    """Renamed sessions show the title first; others their summary or first prompt."""
    if record.custom_title:
        prefix = f"{TITLE_GLYPH} {record.custom_title}"
        if len(prefix) >= max_chars:
            return prefix[:max_chars]
        if record.summary:
            remaining = max_chars - len(prefix) - 3
            if remaining > 10:
                return f"{prefix} - {record.summary[:remaining]}"
        return prefix

    text = record.summary or record.first_message or ""
    return text[:max_chars]


def format_row(record: SessionRecord, row: "NavigationRow", now: datetime | None = None) -> str:
    if row.focused:
        marker = FOCUSED_GLYPH
    elif row.has_children:
        marker = CHILDREN_GLYPH
    else:
        marker = " "
    indent = "  " * row.depth
    return (
        f"{marker} {format_time_relative(record.created, now):<6} "
        f"{format_time_relative(record.modified, now):<6} "
        f"{record.project[:12]:<12} {indent}{format_session_desc(record, 50)}"
    )


def render_session_table(
    records: Iterable[SessionRecord],
    count: int,
    debug: bool = False,
    now: datetime | None = None,
) -> list[str]:
    rows = list(records)
    lines: list[str] = []
    if debug:
        lines.append(f"{'CREAT':<6} {'MOD':<6} {'PROJECT':<16} {'SOURCE':<10} {'ID':<38} {'TURNS':>5} SUMMARY")
        lines.append(_RULE * 120)
        for record in rows[:count]:
            lines.append(
                f"{format_time_relative(record.created, now):<6} "
                f"{format_time_relative(record.modified, now):<6} "
                f"{record.project[:16]:<16} {record.source[:10]:<10} {record.id:<38} "
                f"{record.turn_count:>5} {format_session_desc(record, 35)}"
            )
        lines.append(_RULE * 120)
        lines.append(f"Total: {len(rows)} sessions")
        return lines

    lines.append(f"{'CREAT':<6} {'MOD':<6} {'PROJECT':<16} SUMMARY")
    lines.append(_RULE * 90)
    for record in rows[:count]:
        lines.append(
            f"{format_time_relative(record.created, now):<6} "
            f"{format_time_relative(record.modified, now):<6} "
            f"{record.project[:16]:<16} {format_session_desc(record, 55)}"
        )
    lines.append(_RULE * 90)
    lines.append("Use 'cc-sessions -i' for interactive picker, -f to fork")
    return lines
