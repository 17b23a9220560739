"""cc-sessions configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value or not value.strip():
        return default
    return Path(value.strip()).expanduser()


# Session storage
PROJECTS_DIR = _env_path("CCSESSIONS_PROJECTS_DIR", Path.home() / ".claude" / "projects")
REMOTES_CONFIG_PATH = _env_path(
    "CCSESSIONS_REMOTES_CONFIG",
    Path.home() / ".config" / "cc-sessions" / "remotes.toml",
)
DEFAULT_REMOTE_CACHE_DIR = "~/.cache/cc-sessions/remotes"
DEFAULT_STALE_THRESHOLD_SECONDS = 3600

# Sampling windows
HEAD_LINES = _env_int("CCSESSIONS_HEAD_LINES", 50)
TAIL_BYTES = _env_int("CCSESSIONS_TAIL_BYTES", 16 * 1024)
FIRST_MESSAGE_MAX_CHARS = 50

# Scanning
SCAN_WORKERS = max(1, _env_int("CCSESSIONS_SCAN_WORKERS", 8))

# Remote sync policy
STRICT_SYNC = _env_bool("CCSESSIONS_STRICT_SYNC", False)

# Logging / observability
LOG_LEVEL = os.getenv("CCSESSIONS_LOG_LEVEL", "WARNING").strip().upper() or "WARNING"
OTEL_ENABLED = _env_bool("CCSESSIONS_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("CCSESSIONS_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("CCSESSIONS_OTEL_SERVICE_NAME", "cc-sessions")
PROM_PORT = _env_int("CCSESSIONS_PROM_PORT", 0)
