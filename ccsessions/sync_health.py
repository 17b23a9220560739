"""Summarize per-remote sync outcomes and apply the strict/lenient policy."""
from __future__ import annotations

import logging
from typing import Iterable

from ccsessions.errors import RemoteSyncFailure
from ccsessions.models import ScanResult, SyncOutcome, SyncSummary

logger = logging.getLogger("ccsessions.remote")


def with_session_counts(outcomes: Iterable[SyncOutcome], scan: ScanResult) -> list[SyncOutcome]:
    """Fill ``sessions_loaded`` from the merged scan, keyed by record source."""
    loaded: dict[str, int] = {}
    for record in scan.sessions:
        loaded[record.source] = loaded.get(record.source, 0) + 1
    return [
        outcome.model_copy(update={"sessions_loaded": loaded.get(outcome.remote_name, 0)})
        for outcome in outcomes
    ]


def summarize_sync(outcomes: Iterable[SyncOutcome]) -> SyncSummary:
    collected = list(outcomes)
    failures = [
        (outcome.remote_name, outcome.failure_reason or "unknown error")
        for outcome in collected
        if not outcome.succeeded
    ]
    return SyncSummary(
        successful_count=len(collected) - len(failures),
        failed_count=len(failures),
        failures=failures,
        outcomes=collected,
    )


def enforce_sync_policy(summary: SyncSummary, strict: bool) -> SyncSummary:
    """Raise RemoteSyncFailure in strict mode when any remote failed.

    Otherwise each failure is logged and the caller keeps listing whatever
    cached sessions are available.
    """
    if summary.ok:
        return summary
    if strict:
        raise RemoteSyncFailure(summary)
    for name, reason in summary.failures:
        logger.warning("Remote '%s' failed to sync; showing cached sessions: %s", name, reason)
    return summary


def format_sync_summary(summary: SyncSummary) -> list[str]:
    lines = [f"Remotes: {summary.successful_count} ok, {summary.failed_count} failed"]
    for outcome in summary.outcomes:
        if outcome.succeeded:
            state = "synced" if outcome.synced else "cached"
            lines.append(f"  {outcome.remote_name}: {state}, {outcome.sessions_loaded} session(s)")
        else:
            lines.append(f"  {outcome.remote_name}: FAILED ({outcome.failure_reason})")
    return lines
