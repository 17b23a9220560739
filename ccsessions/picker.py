"""Drive the navigation state machine from a frontend.

The loop is synchronous: read one action, apply it, redraw. A full-text search
triggered by an action finishes before the next action is read.

``LinePickerFrontend`` is a minimal stdin/stdout frontend. Full-screen
frontends implement the same ``PickerFrontend`` protocol.
"""
from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Optional, Protocol, TextIO

from ccsessions.display import format_row
from ccsessions.fork_graph import SessionSnapshot
from ccsessions.models import SessionRecord
from ccsessions.navigation import (
    Action,
    Effect,
    NavigationRow,
    NavigationState,
    QueryChanged,
    SearchFn,
    SearchView,
    action_for_key,
    transition,
    visible_rows,
)

logger = logging.getLogger("ccsessions.picker")


class PickerFrontend(Protocol):
    def show(self, state: NavigationState, rows: list[NavigationRow], snapshot: SessionSnapshot) -> None:
        ...

    def read_action(
        self,
        state: NavigationState,
        rows: list[NavigationRow],
        snapshot: SessionSnapshot,
    ) -> Optional[Action]:
        """Next action, or None when input is exhausted."""
        ...


def run_picker(
    snapshot: SessionSnapshot,
    frontend: PickerFrontend,
    search: Optional[SearchFn] = None,
    state: Optional[NavigationState] = None,
) -> Optional[SessionRecord]:
    """Run until the user selects a session (returned) or exits (None)."""
    current = state or NavigationState()
    while True:
        rows = visible_rows(current, snapshot)
        frontend.show(current, rows, snapshot)
        action = frontend.read_action(current, rows, snapshot)
        if action is None:
            return None
        result = transition(current, action, snapshot, search)
        if result.rejected:
            logger.info("Ignored action: %s", result.rejected)
        if result.effect is Effect.EXIT:
            return None
        if result.effect is Effect.SELECT and result.selected_id:
            return snapshot.get(result.selected_id)
        current = result.state


def fuzzy_filter(rows: list[NavigationRow], snapshot: SessionSnapshot, text: str) -> list[NavigationRow]:
    """Case-insensitive substring filter over project, title, summary and prompt."""
    needle = text.strip().lower()
    if not needle:
        return rows
    kept: list[NavigationRow] = []
    for row in rows:
        record = snapshot.get(row.session_id)
        if record is None:
            continue
        haystack = " ".join(
            part
            for part in (record.project, record.custom_title, record.summary, record.first_message, record.id)
            if part
        ).lower()
        if needle in haystack:
            kept.append(row)
    return kept


class LinePickerFrontend:
    """One command per line.

    ``#<n>`` selects row n, ``> <n>`` drills into row n, ``<`` goes back,
    ``/`` starts full-text search, ``tab`` returns to normal filtering,
    ``esc`` (or ``q``) leaves search / goes back / exits. Outside search a
    bare ``<n>`` also selects row n. In search mode any other text, digits
    included, is the query; otherwise it narrows the rows shown.
    """

    _ALIASES = {"<": "left", "/": "ctrl-s", "tab": "ctrl-f", "q": "esc"}

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None, now: datetime | None = None):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.now = now
        self.filter_text = ""
        self._shown: list[NavigationRow] = []

    def show(self, state: NavigationState, rows: list[NavigationRow], snapshot: SessionSnapshot) -> None:
        shown = rows if state.in_search else fuzzy_filter(rows, snapshot, self.filter_text)
        self._shown = shown
        if isinstance(state.view, SearchView):
            header = f"search> {state.view.query}"
        else:
            header = f"filter> {self.filter_text}"
        print(header, file=self.stdout)
        for index, row in enumerate(shown):
            record = snapshot.get(row.session_id)
            if record is not None:
                print(f"{index:>3} {format_row(record, row, self.now)}", file=self.stdout)
        if not shown:
            print("  (no sessions)", file=self.stdout)

    def _row_id(self, token: str) -> Optional[str]:
        try:
            index = int(token)
        except ValueError:
            return None
        if 0 <= index < len(self._shown):
            return self._shown[index].session_id
        return None

    def read_action(
        self,
        state: NavigationState,
        rows: list[NavigationRow],
        snapshot: SessionSnapshot,
    ) -> Optional[Action]:
        while True:
            line = self.stdin.readline()
            if not line:
                return None
            command = line.strip()
            key = self._ALIASES.get(command, command)

            if command.startswith(">"):
                action = action_for_key("right", self._row_id(command[1:].strip()))
            elif command.startswith("#"):
                action = action_for_key("enter", self._row_id(command[1:].strip()))
            elif command.isdigit() and not state.in_search:
                action = action_for_key("enter", self._row_id(command))
            else:
                action = action_for_key(key) if key else None

            if action is not None:
                return action
            if state.in_search:
                return QueryChanged(command)
            self.filter_text = command
            self.show(state, rows, snapshot)
