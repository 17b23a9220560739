"""Extract SessionRecord metadata from Claude Code JSONL transcripts.

Everything that knows about Claude Code's on-disk layout lives here:

    ~/.claude/projects/
      -Users-you-project-a/
        abc12345-1234-1234-1234-123456789abc.jsonl   # one transcript per session
      -Users-you-project-b/
        ...

Only the head (first lines) and the tail (last bytes) are parsed as JSON. Two
values can sit anywhere in the file: the custom title written by ``/rename``
and the user turns behind ``turn_count``. Both come from a single streaming
pass that pre-filters lines with a regex before decoding them.
"""
from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from ccsessions import config
from ccsessions.date_utils import EPOCH, file_metadata_dates, parse_entry_timestamp
from ccsessions.display import normalize_summary
from ccsessions.errors import InvalidFilename, MalformedEntry, SessionIOError
from ccsessions.models import SessionRecord
from ccsessions.parsers import sampler
from ccsessions.parsers.classification import counts_as_turn

logger = logging.getLogger("ccsessions.parser")

_SESSION_UUID_PATTERN = re.compile(
    r"^[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}$"
)
_CUSTOM_TITLE_LINE_PATTERN = re.compile(r'"type"\s*:\s*"custom-title"')
_USER_LINE_PATTERN = re.compile(r'"type"\s*:\s*"user"')

# Encoded directory prefixes stripped when no cwd is recorded.
_PROJECT_DIR_PREFIXES = (
    "Documents-repos-",
    "Documents-",
    "repos-",
    "third-party-repos-",
)


def is_valid_session_uuid(value: str) -> bool:
    return bool(_SESSION_UUID_PATTERN.match(value or ""))


def session_id_from_path(path: Path) -> str:
    stem = path.stem
    if not is_valid_session_uuid(stem):
        raise InvalidFilename(f"Not a session transcript: {path.name}")
    return stem


def parse_entry(line: str) -> dict[str, Any]:
    """Decode one transcript line; anything but a JSON object is malformed."""
    stripped = line.strip()
    if not stripped:
        raise MalformedEntry("empty line")
    try:
        entry = json.loads(stripped)
    except json.JSONDecodeError as exc:
        raise MalformedEntry(str(exc)) from exc
    if not isinstance(entry, dict):
        raise MalformedEntry(f"expected object, got {type(entry).__name__}")
    return entry


def _iter_entries(lines: list[str]):
    for line in lines:
        try:
            yield parse_entry(line)
        except MalformedEntry:
            continue


def extract_text_content(content: Any) -> str | None:
    """Text of a message: a plain string or the first ``text`` content block."""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return None
    for block in content:
        if isinstance(block, dict) and block.get("type") == "text":
            text = block.get("text")
            if isinstance(text, str):
                return text
    return None


def _user_text(entry: dict[str, Any]) -> str | None:
    if entry.get("type") != "user":
        return None
    message = entry.get("message")
    if not isinstance(message, dict):
        return None
    role = message.get("role")
    if role is not None and role != "user":
        return None
    return extract_text_content(message.get("content"))


def _fork_parent(entry: dict[str, Any]) -> str | None:
    forked = entry.get("forkedFrom")
    if isinstance(forked, dict):
        forked = forked.get("sessionId")
    if isinstance(forked, str) and forked.strip():
        return forked.strip()
    return None


def extract_project_name(project_path: str, fallback_dir: str) -> str:
    """Short project label from the cwd, else from the encoded directory name."""
    if project_path:
        name = project_path.rstrip("/").rsplit("/", 1)[-1]
        return name or "unknown"

    stripped = fallback_dir
    if stripped.startswith("-Users-"):
        _, sep, rest = stripped[len("-Users-"):].partition("-")
        if sep:
            stripped = rest
    for prefix in _PROJECT_DIR_PREFIXES:
        if stripped.startswith(prefix):
            return stripped[len(prefix):]
    return stripped


def _read_head(path: Path, session_id: str) -> tuple[str, str | None, str | None]:
    project_path = ""
    first_message: str | None = None
    # (has no timestamp, timestamp, file position, parent id)
    fork_candidates: list[tuple[bool, datetime, int, str]] = []

    for position, entry in enumerate(_iter_entries(sampler.head_lines(path))):
        if not project_path:
            cwd = entry.get("cwd")
            if isinstance(cwd, str) and cwd:
                project_path = cwd

        if first_message is None:
            text = _user_text(entry)
            if text is not None and counts_as_turn(text):
                first_message = normalize_summary(text, config.FIRST_MESSAGE_MAX_CHARS)

        parent = _fork_parent(entry)
        if parent and parent != session_id:
            stamp = parse_entry_timestamp(entry.get("timestamp"))
            fork_candidates.append((stamp is None, stamp or EPOCH, position, parent))

    # Earliest stamped entry wins; file order breaks ties and ranks unstamped entries.
    forked_from = min(fork_candidates)[3] if fork_candidates else None
    return project_path, first_message, forked_from


def _read_summary(path: Path) -> str | None:
    summary: str | None = None
    for entry in _iter_entries(sampler.tail_lines(path)):
        if entry.get("type") == "summary" and isinstance(entry.get("summary"), str):
            summary = entry["summary"]
    return summary


def _scan_full_file(path: Path) -> tuple[str | None, int]:
    """Return (latest custom title, turn count) from one pass over the file."""
    custom_title: str | None = None
    turn_count = 0
    for line in sampler.iter_lines(path):
        if _CUSTOM_TITLE_LINE_PATTERN.search(line):
            try:
                entry = parse_entry(line)
            except MalformedEntry:
                continue
            title = entry.get("customTitle")
            if isinstance(title, str) and title.strip():
                custom_title = title.strip()
            continue

        if _USER_LINE_PATTERN.search(line):
            try:
                entry = parse_entry(line)
            except MalformedEntry:
                continue
            text = _user_text(entry)
            if text is not None and counts_as_turn(text):
                turn_count += 1
    return custom_title, turn_count


def extract_session_metadata(path: Path, source: str = "local") -> SessionRecord | None:
    """Build a SessionRecord from one transcript.

    Returns None for non-session filenames and for transcripts with no
    project path, no user turn and no summary. Raises SessionIOError when the
    file cannot be read.
    """
    try:
        session_id = session_id_from_path(path)
    except InvalidFilename:
        return None

    try:
        stats = path.stat()
    except OSError as exc:
        raise SessionIOError(path, str(exc)) from exc
    created, modified = file_metadata_dates(stats)

    project_path, first_message, forked_from = _read_head(path, session_id)
    summary = _read_summary(path)
    custom_title, turn_count = _scan_full_file(path)

    if not project_path and first_message is None and summary is None:
        logger.debug("Skipping empty session %s", path)
        return None

    return SessionRecord(
        id=session_id,
        project=extract_project_name(project_path, path.parent.name),
        project_path=project_path,
        filepath=str(path),
        first_message=first_message,
        summary=summary,
        custom_title=custom_title,
        forked_from=forked_from,
        created=created,
        modified=modified,
        turn_count=turn_count,
        source=source,
    )
