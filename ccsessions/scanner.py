"""Discover transcripts and extract their metadata in parallel.

Each worker extracts one file independently. Results are merged only after
every worker has finished, and the merged list is sorted by modification time
(newest first, ties by id) so the output does not depend on discovery or
completion order.
"""
from __future__ import annotations

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Sequence

from ccsessions import config
from ccsessions.errors import SessionIOError
from ccsessions.models import ScanResult, SessionRecord
from ccsessions.observability import record_parser_failure, record_scan, start_span
from ccsessions.parsers import sampler
from ccsessions.parsers.platforms.claude_code.parser import is_valid_session_uuid
from ccsessions.parsers.platforms.registry import parse_session_file

logger = logging.getLogger("ccsessions.scan")

_SUBAGENTS_DIR = "subagents"


def find_session_files(projects_dir: Path) -> list[Path]:
    """Session transcripts one level below ``projects_dir``, sorted by path.

    Only files named by a session UUID count; agent sidechains and other
    ``.jsonl`` files are not sessions.
    """
    if not projects_dir.is_dir():
        return []
    return sorted(
        path
        for path in projects_dir.glob("*/*.jsonl")
        if path.is_file()
        and path.parent.name != _SUBAGENTS_DIR
        and is_valid_session_uuid(path.stem)
    )


def session_sort_key(record: SessionRecord) -> tuple[float, str]:
    return (-record.modified.timestamp(), record.id)


def _extract_one(path: Path, source: str) -> tuple[SessionRecord | None, bool]:
    """Return (record, failed). Never raises."""
    try:
        return parse_session_file(path, source=source), False
    except SessionIOError as exc:
        logger.warning("Skipping unreadable transcript: %s", exc)
        return None, True
    except Exception:  # noqa: BLE001
        logger.exception("Parser failed on %s", path)
        record_parser_failure("claude_code", source=source)
        return None, True


def scan_sessions(
    paths: Sequence[Path],
    source: str = "local",
    workers: int | None = None,
) -> ScanResult:
    """Extract every path in parallel and merge into a deterministic order."""
    max_workers = max(1, workers or config.SCAN_WORKERS)
    started = time.monotonic()

    with start_span("sessions.scan", {"source": source, "files": len(paths)}):
        if len(paths) <= 1 or max_workers == 1:
            outcomes = [_extract_one(path, source) for path in paths]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                outcomes = list(executor.map(lambda p: _extract_one(p, source), paths))

    sessions = sorted(
        (record for record, _ in outcomes if record is not None),
        key=session_sort_key,
    )
    skipped = sum(1 for _, failed in outcomes if failed)
    duration_ms = (time.monotonic() - started) * 1000

    record_scan(source, "partial" if skipped else "ok", duration_ms)
    logger.info(
        "Scanned %d transcript(s) from %s: %d session(s), %d skipped (%.0f ms)",
        len(paths),
        source,
        len(sessions),
        skipped,
        duration_ms,
    )
    return ScanResult(sessions=sessions, scanned=len(paths), skipped=skipped)


def merge_scan_results(results: Iterable[ScanResult]) -> ScanResult:
    """Combine per-source scans; the newest record wins when ids collide."""
    merged: list[SessionRecord] = []
    scanned = 0
    skipped = 0
    for result in results:
        merged.extend(result.sessions)
        scanned += result.scanned
        skipped += result.skipped

    seen: set[str] = set()
    unique: list[SessionRecord] = []
    for record in sorted(merged, key=session_sort_key):
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return ScanResult(sessions=unique, scanned=scanned, skipped=skipped)


def load_sessions(
    projects_dir: Path,
    remote_dirs: dict[str, Path] | None = None,
    workers: int | None = None,
) -> ScanResult:
    """Scan the local projects dir plus each remote cache dir."""
    results = [scan_sessions(find_session_files(projects_dir), source="local", workers=workers)]
    for name, cache_dir in sorted((remote_dirs or {}).items()):
        results.append(scan_sessions(find_session_files(cache_dir), source=name, workers=workers))
    return merge_scan_results(results)


def compile_search_pattern(pattern: str) -> re.Pattern[str]:
    """Case-insensitive regex; an invalid expression is searched literally."""
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        logger.debug("Invalid search regex %r (%s); using literal match", pattern, exc)
        return re.compile(re.escape(pattern), re.IGNORECASE)


def _file_matches(path: Path, matcher: re.Pattern[str]) -> bool:
    try:
        return any(matcher.search(line) for line in sampler.iter_lines(path))
    except SessionIOError as exc:
        logger.warning("Skipping unreadable transcript during search: %s", exc)
        return False


def search_sessions(
    paths: Sequence[Path],
    pattern: str,
    workers: int | None = None,
) -> set[str]:
    """Ids of session transcripts containing ``pattern`` anywhere.

    A blank pattern matches nothing.
    """
    if not pattern.strip():
        return set()
    candidates = [path for path in paths if is_valid_session_uuid(path.stem)]
    matcher = compile_search_pattern(pattern)
    max_workers = max(1, workers or config.SCAN_WORKERS)

    with start_span("sessions.search", {"files": len(candidates)}):
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            hits = list(executor.map(lambda p: _file_matches(p, matcher), candidates))
    return {path.stem for path, hit in zip(candidates, hits) if hit}
