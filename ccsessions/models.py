"""Pydantic models shared by the scanner, remote sync and CLI."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ccsessions import config

# ── Session-related models ──────────────────────────────────────────


class SessionRecord(BaseModel):
    """Metadata extracted from one transcript file.

    Records are per-scan snapshots: a rescan builds new records instead of
    updating existing ones.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    project: str = ""
    project_path: str = ""
    filepath: str = ""
    first_message: Optional[str] = None
    summary: Optional[str] = None
    custom_title: Optional[str] = None  # set by /rename
    forked_from: Optional[str] = None  # may point at a session that is not loaded
    created: datetime
    modified: datetime
    turn_count: int = Field(default=0, ge=0)
    source: str = "local"  # "local" or the remote name


class ScanResult(BaseModel):
    sessions: list[SessionRecord] = Field(default_factory=list)
    scanned: int = 0
    skipped: int = 0  # files that could not be read


# ── Remote-related models ───────────────────────────────────────────


class RemoteConfig(BaseModel):
    host: str  # SSH config alias or raw hostname/IP
    user: Optional[str] = None
    projects_dir: Optional[str] = None


class RemoteSettings(BaseModel):
    cache_dir: str = config.DEFAULT_REMOTE_CACHE_DIR
    stale_threshold: int = Field(default=config.DEFAULT_STALE_THRESHOLD_SECONDS, ge=0)


class RemotesConfig(BaseModel):
    remotes: dict[str, RemoteConfig] = Field(default_factory=dict)
    settings: RemoteSettings = Field(default_factory=RemoteSettings)


class SyncOutcome(BaseModel):
    remote_name: str
    succeeded: bool
    synced: bool = True  # False when the cache was fresh and rsync was skipped
    sessions_loaded: int = 0
    failure_reason: Optional[str] = None
    duration_ms: int = 0


class SyncSummary(BaseModel):
    successful_count: int = 0
    failed_count: int = 0
    failures: list[tuple[str, str]] = Field(default_factory=list)
    outcomes: list[SyncOutcome] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed_count == 0
