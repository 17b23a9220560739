"""Remote session mirrors.

Transcripts from other machines are copied with rsync over SSH into a local
cache, one directory per remote:

    remote:~/.claude/projects/  -->  ~/.cache/cc-sessions/remotes/<name>/

The scanner reads those caches like local project dirs. Remotes are declared
in ``~/.config/cc-sessions/remotes.toml``:

    [remotes.devbox]
    host = "devbox"               # SSH config alias

    [remotes.workstation]
    host = "192.168.1.100"
    user = "ec2-user"             # optional for raw hosts
    projects_dir = "/home/ian/.claude/projects"

    [settings]
    cache_dir = "~/.cache/cc-sessions/remotes"
    stale_threshold = 3600        # seconds before an automatic re-sync
"""
from __future__ import annotations

import logging
import subprocess
import time
import tomllib
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from ccsessions import config
from ccsessions.errors import ConfigError
from ccsessions.models import RemoteConfig, RemoteSettings, RemotesConfig, SyncOutcome
from ccsessions.observability import record_remote_sync, start_span

logger = logging.getLogger("ccsessions.remote")

LAST_SYNC_FILE = ".last_sync"
DEFAULT_REMOTE_PROJECTS_DIR = "~/.claude/projects"
_RSYNC_TIMEOUT_SECONDS = 600


def parse_remotes_config(text: str) -> RemotesConfig:
    try:
        raw = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in remotes config: {exc}") from exc
    try:
        return RemotesConfig(**raw)
    except (TypeError, ValidationError) as exc:
        raise ConfigError(f"Invalid remotes config: {exc}") from exc


def load_remotes_config(path: Path | None = None) -> RemotesConfig:
    """Load remote definitions; a missing file means no remotes."""
    config_path = path or config.REMOTES_CONFIG_PATH
    if not config_path.exists():
        return RemotesConfig()
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {config_path}: {exc}") from exc
    return parse_remotes_config(text)


def remote_cache_dir(settings: RemoteSettings, remote_name: str) -> Path:
    return Path(settings.cache_dir).expanduser() / remote_name


def remote_cache_dirs(remotes: RemotesConfig) -> dict[str, Path]:
    return {name: remote_cache_dir(remotes.settings, name) for name in remotes.remotes}


def ssh_target(remote: RemoteConfig) -> str:
    """``user@host`` or just ``host``."""
    if remote.user:
        return f"{remote.user}@{remote.host}"
    return remote.host


def remote_projects_dir(remote: RemoteConfig) -> str:
    return remote.projects_dir or DEFAULT_REMOTE_PROJECTS_DIR


# ── Staleness tracking ──────────────────────────────────────────────


def get_last_sync(settings: RemoteSettings, remote_name: str) -> datetime | None:
    marker = remote_cache_dir(settings, remote_name) / LAST_SYNC_FILE
    try:
        raw = marker.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    try:
        return datetime.fromtimestamp(int(raw), timezone.utc)
    except ValueError:
        logger.warning("Invalid timestamp in %s: %r", marker, raw)
        return None


def is_stale(settings: RemoteSettings, remote_name: str, now: datetime | None = None) -> bool:
    """A cache never synced, or synced longer ago than the threshold, is stale."""
    last_sync = get_last_sync(settings, remote_name)
    if last_sync is None:
        return True
    current = now or datetime.now(timezone.utc)
    return (current - last_sync).total_seconds() > settings.stale_threshold


def update_last_sync(cache_dir: Path, now: datetime | None = None) -> None:
    current = now or datetime.now(timezone.utc)
    (cache_dir / LAST_SYNC_FILE).write_text(str(int(current.timestamp())), encoding="utf-8")


# ── Sync operations ─────────────────────────────────────────────────


def build_rsync_command(remote: RemoteConfig, cache_dir: Path) -> list[str]:
    # Trailing slashes copy the directory contents rather than the directory.
    source = f"{ssh_target(remote)}:{remote_projects_dir(remote)}/"
    return [
        "rsync",
        "-az",
        "--delete",
        "-e",
        "ssh",
        "--exclude",
        "*.lock",
        source,
        f"{cache_dir}/",
    ]


def sync_remote(remote_name: str, remote: RemoteConfig, settings: RemoteSettings) -> SyncOutcome:
    """Mirror one remote into its cache dir. Failures become a failed outcome."""
    cache_dir = remote_cache_dir(settings, remote_name)
    started = time.monotonic()

    def _failed(reason: str) -> SyncOutcome:
        duration_ms = int((time.monotonic() - started) * 1000)
        record_remote_sync(remote_name, "failed", duration_ms)
        logger.warning("Failed to sync remote '%s': %s", remote_name, reason)
        return SyncOutcome(
            remote_name=remote_name,
            succeeded=False,
            failure_reason=reason,
            duration_ms=duration_ms,
        )

    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return _failed(f"could not create cache dir {cache_dir}: {exc}")

    with start_span("remote.sync", {"remote": remote_name}):
        try:
            completed = subprocess.run(
                build_rsync_command(remote, cache_dir),
                capture_output=True,
                text=True,
                timeout=_RSYNC_TIMEOUT_SECONDS,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            return _failed(f"failed to execute rsync: {exc}")

    if completed.returncode != 0:
        stderr = (completed.stderr or "").strip()
        return _failed(stderr or f"rsync exited with status {completed.returncode}")

    try:
        update_last_sync(cache_dir)
    except OSError as exc:
        return _failed(f"could not update {LAST_SYNC_FILE}: {exc}")

    duration_ms = int((time.monotonic() - started) * 1000)
    record_remote_sync(remote_name, "ok", duration_ms)
    logger.info("Synced remote '%s' in %d ms", remote_name, duration_ms)
    return SyncOutcome(remote_name=remote_name, succeeded=True, duration_ms=duration_ms)


def sync_remotes(remotes: RemotesConfig, check_staleness: bool = True) -> list[SyncOutcome]:
    """One outcome per configured remote, in name order.

    With ``check_staleness`` a fresh cache is left alone and reported as a
    successful, unsynced outcome.
    """
    outcomes: list[SyncOutcome] = []
    for name in sorted(remotes.remotes):
        remote = remotes.remotes[name]
        if check_staleness and not is_stale(remotes.settings, name):
            outcomes.append(SyncOutcome(remote_name=name, succeeded=True, synced=False))
            continue
        outcomes.append(sync_remote(name, remote, remotes.settings))
    return outcomes
