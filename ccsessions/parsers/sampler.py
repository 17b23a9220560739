"""Partial reads of transcript files: head lines, tail window, streaming pass."""
from __future__ import annotations

import os
from itertools import islice
from pathlib import Path
from typing import Iterator

from ccsessions import config
from ccsessions.errors import SessionIOError


def head_lines(path: Path, limit: int | None = None) -> list[str]:
    """Return up to ``limit`` lines from the start of the file."""
    count = config.HEAD_LINES if limit is None else limit
    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            return [line.rstrip("\r\n") for line in islice(handle, max(0, count))]
    except OSError as exc:
        raise SessionIOError(path, str(exc)) from exc


def tail_lines(path: Path, size: int | None = None) -> list[str]:
    """Return the complete lines inside the last ``size`` bytes of the file.

    When the window starts mid-file the first, partial line is dropped.
    """
    window = config.TAIL_BYTES if size is None else size
    try:
        with path.open("rb") as handle:
            length = handle.seek(0, os.SEEK_END)
            start = max(0, length - max(0, window))
            # One byte of look-behind tells whether ``start`` is a line boundary.
            handle.seek(max(0, start - 1))
            raw = handle.read()
    except OSError as exc:
        raise SessionIOError(path, str(exc)) from exc

    if start > 0:
        newline = raw.find(b"\n")
        raw = b"" if newline < 0 else raw[newline + 1:]
    return raw.decode("utf-8", errors="replace").splitlines()


def iter_lines(path: Path) -> Iterator[str]:
    """Yield every line of the file without loading it whole."""
    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                yield line.rstrip("\r\n")
    except OSError as exc:
        raise SessionIOError(path, str(exc)) from exc
