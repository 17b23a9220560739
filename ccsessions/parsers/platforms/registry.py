"""Session parser registry for platform-specific implementations."""
from __future__ import annotations

from pathlib import Path

from ccsessions.models import SessionRecord
from ccsessions.parsers.platforms.claude_code import parser as claude_code_parser


def parse_session_file(path: Path, source: str = "local") -> SessionRecord | None:
    """Parse a session file by delegating to the matching platform parser.

    Claude Code `.jsonl` transcripts go to the Claude-specific parser module.
    Additional platforms can be registered here.
    """
    if path.suffix.lower() == ".jsonl":
        return claude_code_parser.extract_session_metadata(path, source=source)
    return None
