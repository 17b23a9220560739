"""cc-sessions command line.

Usage:
  cc-sessions                      # recent sessions table
  cc-sessions -p my-project -c 30  # filter by project name
  cc-sessions --search "rate limit"
  cc-sessions -i                   # picker; prints the resume command
  cc-sessions -f                   # picker; prints the fork command
  cc-sessions --sync --strict      # re-sync every remote, fail on any error
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, TextIO

from rich.console import Console
from rich.text import Text

from ccsessions import config
from ccsessions.display import render_session_table, truncate
from ccsessions.errors import ConfigError, MalformedEntry, RemoteSyncFailure, SessionIOError
from ccsessions.fork_graph import SessionSnapshot
from ccsessions.models import SessionRecord
from ccsessions.observability import initialize as initialize_observability, shutdown as shutdown_observability
from ccsessions.parsers import sampler
from ccsessions.parsers.classification import counts_as_turn
from ccsessions.parsers.platforms.claude_code.parser import extract_text_content, parse_entry
from ccsessions.picker import LinePickerFrontend, run_picker
from ccsessions.remote import load_remotes_config, remote_cache_dirs, sync_remotes
from ccsessions.scanner import load_sessions, search_sessions
from ccsessions.sync_health import enforce_sync_policy, format_sync_summary, summarize_sync, with_session_counts

_USER_STYLE = "cyan"
_ASSISTANT_STYLE = "yellow"
_PREVIEW_MAX_LINES = 100


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cc-sessions", description="List Claude Code sessions")
    parser.add_argument("-c", "--count", type=int, default=15, help="Number of sessions to show")
    parser.add_argument("-i", "--interactive", action="store_true", help="Interactive picker")
    parser.add_argument("-f", "--fork", action="store_true", help="Fork the selected session instead of resuming")
    parser.add_argument("-p", "--project", default="", help="Filter by project name (case-insensitive substring)")
    parser.add_argument("--search", default="", help="Only sessions whose transcript matches this pattern")
    parser.add_argument("--sync", action="store_true", help="Sync every remote, even fresh caches")
    parser.add_argument("--strict", action="store_true", help="Fail when any remote sync fails")
    parser.add_argument("--preview", type=Path, metavar="FILE", help="Print a transcript preview")
    parser.add_argument("--debug", action="store_true", help="Show ids, sources and scan diagnostics")
    return parser


def _message_text(entry: dict) -> Optional[str]:
    message = entry.get("message")
    if not isinstance(message, dict):
        return None
    return extract_text_content(message.get("content"))


def print_session_preview(path: Path, out: TextIO) -> None:
    """Colored U:/A: transcript preview; command and tool noise is skipped."""
    console = Console(file=out, highlight=False, soft_wrap=True)
    shown = 0
    for line in sampler.iter_lines(path):
        if shown >= _PREVIEW_MAX_LINES:
            break
        try:
            entry = parse_entry(line)
        except MalformedEntry:
            continue
        text = _message_text(entry)
        if not text:
            continue
        first_line = text.splitlines()[0] if text.splitlines() else text
        if entry.get("type") == "user" and counts_as_turn(text):
            console.print(Text(f"U: {truncate(first_line, 120)}", style=_USER_STYLE))
            shown += 1
        elif entry.get("type") == "assistant":
            console.print(Text(f"A: {truncate(first_line, 80)}", style=_ASSISTANT_STYLE))
            shown += 1
    if shown == 0:
        console.print("(empty session)", markup=False)


def _single_quote(value: str) -> str:
    return "'" + value.replace("'", "'\\''") + "'"


def resume_command(record: SessionRecord, fork: bool) -> str:
    fork_flag = " --fork-session" if fork else ""
    return f"cd {_single_quote(record.project_path or '.')} && claude -r {_single_quote(record.id)}{fork_flag}"


def filter_by_project(records: Sequence[SessionRecord], project: str) -> list[SessionRecord]:
    needle = project.strip().lower()
    if not needle:
        return list(records)
    return [record for record in records if needle in record.project.lower()]


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.WARNING))
    initialize_observability()
    try:
        return _run(args, sys.stdout)
    finally:
        shutdown_observability()


def _run(args: argparse.Namespace, out: TextIO) -> int:
    if args.preview:
        try:
            print_session_preview(args.preview, out)
        except SessionIOError as exc:
            print(str(exc), file=sys.stderr)
            return 1
        return 0

    try:
        remotes = load_remotes_config()
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    projects_dir = config.PROJECTS_DIR
    if not projects_dir.exists() and not remotes.remotes:
        print(f"No Claude sessions found at {projects_dir}", file=sys.stderr)
        return 1

    outcomes = sync_remotes(remotes, check_staleness=not args.sync) if remotes.remotes else []
    scan = load_sessions(projects_dir, remote_cache_dirs(remotes))
    summary = summarize_sync(with_session_counts(outcomes, scan))
    try:
        enforce_sync_policy(summary, strict=args.strict or config.STRICT_SYNC)
    except RemoteSyncFailure as exc:
        print(str(exc), file=sys.stderr)
        for line in format_sync_summary(exc.summary):
            print(line, file=sys.stderr)
        return 2

    sessions = filter_by_project(scan.sessions, args.project)
    if args.search:
        matched = search_sessions([Path(record.filepath) for record in sessions], args.search)
        sessions = [record for record in sessions if record.id in matched]

    if not sessions:
        if args.project or args.search:
            print("No sessions found matching filter", file=sys.stderr)
        else:
            print("No sessions found", file=sys.stderr)
        return 1

    if args.interactive or args.fork:
        snapshot = SessionSnapshot.from_records(sessions)
        paths = [Path(record.filepath) for record in snapshot.records]
        selected = run_picker(
            snapshot,
            LinePickerFrontend(stdout=out),
            search=lambda pattern: search_sessions(paths, pattern),
        )
        if selected is None:
            return 0
        verb = "Forking" if args.fork else "Resuming"
        print(f"{verb} session {selected.id} in {selected.project_path}", file=out)
        print(resume_command(selected, args.fork), file=out)
        return 0

    for line in render_session_table(sessions, max(1, args.count), debug=args.debug):
        print(line, file=out)
    if args.debug:
        print(f"Scanned {scan.scanned} file(s), skipped {scan.skipped} unreadable", file=out)
        if summary.outcomes:
            for line in format_sync_summary(summary):
                print(line, file=out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
