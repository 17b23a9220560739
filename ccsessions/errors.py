"""Error taxonomy for session discovery, sync and navigation."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ccsessions.models import SyncSummary


class CCSessionsError(Exception):
    """Base class for cc-sessions errors."""


class SessionIOError(CCSessionsError):
    """A transcript file could not be opened or read.

    The scan skips the file and counts it; the batch continues.
    """

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not read {path}: {reason}")


class MalformedEntry(CCSessionsError):
    """A transcript line is not a JSON object. The line is skipped."""


class InvalidFilename(CCSessionsError):
    """A transcript filename is not a session UUID. Not counted as a failure."""


class ConfigError(CCSessionsError):
    """The remotes configuration file is unreadable or invalid."""


class RemoteSyncFailure(CCSessionsError):
    """One or more remotes failed to sync while strict mode was on."""

    def __init__(self, summary: "SyncSummary"):
        self.summary = summary
        names = ", ".join(name for name, _ in summary.failures) or "unknown"
        super().__init__(f"Remote sync failed for: {names}")


class IllegalTransition(CCSessionsError):
    """A navigation action is not valid in the current state."""
