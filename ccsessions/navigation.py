"""Interactive navigation as a pure state machine.

The picker holds one ``NavigationState`` and replaces it with the result of
``transition`` after each input action. Nothing here renders or reads keys;
``visible_rows`` tells a frontend what to draw for the current view.

Views:

* ``RootView``: fork roots, newest first.
* ``SubtreeView(focus_id)``: the focused session plus its direct children.
* ``SearchView(query, matches, origin)``: full-text matches; ``origin`` is the
  browse view that search was entered from and is restored on exit.

``stack`` holds the views that ``DrillIn`` left behind. An illegal action
never changes the state: it comes back as a rejected ``Transition``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from ccsessions.errors import IllegalTransition
from ccsessions.fork_graph import SessionSnapshot

logger = logging.getLogger("ccsessions.navigation")

SearchFn = Callable[[str], Iterable[str]]


class FilterMode(str, Enum):
    FUZZY = "fuzzy"
    FULL_TEXT = "full_text"


# ── Views and state ─────────────────────────────────────────────────


@dataclass(frozen=True)
class RootView:
    pass


@dataclass(frozen=True)
class SubtreeView:
    focus_id: str


BrowseView = Union[RootView, SubtreeView]


@dataclass(frozen=True)
class SearchView:
    query: str = ""
    matches: tuple[str, ...] = ()
    origin: BrowseView = field(default_factory=RootView)


NavigationView = Union[RootView, SubtreeView, SearchView]


@dataclass(frozen=True)
class NavigationState:
    view: NavigationView = field(default_factory=RootView)
    stack: tuple[NavigationView, ...] = ()

    @property
    def in_search(self) -> bool:
        return isinstance(self.view, SearchView)

    @property
    def filter_mode(self) -> FilterMode:
        return FilterMode.FULL_TEXT if self.in_search else FilterMode.FUZZY

    @property
    def focus_id(self) -> Optional[str]:
        view = self.view.origin if isinstance(self.view, SearchView) else self.view
        return view.focus_id if isinstance(view, SubtreeView) else None


# ── Actions ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class DrillIn:
    session_id: str


@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class EnterFullTextSearch:
    pass


@dataclass(frozen=True)
class QueryChanged:
    text: str


@dataclass(frozen=True)
class ExitSearchOrBack:
    pass


@dataclass(frozen=True)
class ToggleNormalFilterMode:
    pass


@dataclass(frozen=True)
class Select:
    session_id: str


Action = Union[
    DrillIn,
    Back,
    EnterFullTextSearch,
    QueryChanged,
    ExitSearchOrBack,
    ToggleNormalFilterMode,
    Select,
]


class Effect(str, Enum):
    CONTINUE = "continue"
    EXIT = "exit"
    SELECT = "select"


@dataclass(frozen=True)
class Transition:
    state: NavigationState
    effect: Effect = Effect.CONTINUE
    selected_id: Optional[str] = None
    rejected: Optional[str] = None


@dataclass(frozen=True)
class NavigationRow:
    session_id: str
    focused: bool = False
    has_children: bool = False
    depth: int = 0


# ── Transition handlers ─────────────────────────────────────────────


def _drill_in(state: NavigationState, action: DrillIn, snapshot: SessionSnapshot, search: Optional[SearchFn]) -> Transition:
    target = action.session_id
    if target not in snapshot.graph:
        raise IllegalTransition(f"Unknown session {target}")
    if not snapshot.graph.has_children(target):
        raise IllegalTransition(f"Session {target} has no forks")
    if isinstance(state.view, SubtreeView) and state.view.focus_id == target:
        raise IllegalTransition(f"Session {target} is already focused")
    return Transition(NavigationState(view=SubtreeView(target), stack=state.stack + (state.view,)))


def _back(state: NavigationState, action: Action, snapshot: SessionSnapshot, search: Optional[SearchFn]) -> Transition:
    if state.stack:
        return Transition(NavigationState(view=state.stack[-1], stack=state.stack[:-1]))
    if isinstance(state.view, RootView):
        return Transition(state)
    return Transition(NavigationState())


def _enter_search(state: NavigationState, action: EnterFullTextSearch, snapshot: SessionSnapshot, search: Optional[SearchFn]) -> Transition:
    origin = state.view.origin if isinstance(state.view, SearchView) else state.view
    return Transition(replace(state, view=SearchView(origin=origin)))


def _query_changed(state: NavigationState, action: QueryChanged, snapshot: SessionSnapshot, search: Optional[SearchFn]) -> Transition:
    if not isinstance(state.view, SearchView):
        raise IllegalTransition("Query changes are only accepted in full-text search")
    if not action.text.strip():
        return Transition(replace(state, view=replace(state.view, query=action.text, matches=())))
    if search is None:
        raise IllegalTransition("No full-text search backend configured")
    matches = tuple(snapshot.order_of(search(action.text)))
    return Transition(replace(state, view=replace(state.view, query=action.text, matches=matches)))


def _exit_search_or_back(state: NavigationState, action: ExitSearchOrBack, snapshot: SessionSnapshot, search: Optional[SearchFn]) -> Transition:
    if isinstance(state.view, SearchView):
        return Transition(replace(state, view=state.view.origin))
    if state.stack:
        return _back(state, action, snapshot, search)
    return Transition(state, effect=Effect.EXIT)


def _toggle_filter_mode(state: NavigationState, action: ToggleNormalFilterMode, snapshot: SessionSnapshot, search: Optional[SearchFn]) -> Transition:
    if isinstance(state.view, SearchView):
        return Transition(replace(state, view=state.view.origin))
    return Transition(state)


def _select(state: NavigationState, action: Select, snapshot: SessionSnapshot, search: Optional[SearchFn]) -> Transition:
    if action.session_id not in snapshot:
        raise IllegalTransition(f"Unknown session {action.session_id}")
    return Transition(state, effect=Effect.SELECT, selected_id=action.session_id)


_HANDLERS: dict[type, Callable[..., Transition]] = {
    DrillIn: _drill_in,
    Back: _back,
    EnterFullTextSearch: _enter_search,
    QueryChanged: _query_changed,
    ExitSearchOrBack: _exit_search_or_back,
    ToggleNormalFilterMode: _toggle_filter_mode,
    Select: _select,
}


def transition(
    state: NavigationState,
    action: Action,
    snapshot: SessionSnapshot,
    search: Optional[SearchFn] = None,
) -> Transition:
    """Apply ``action`` to ``state``. Never raises for an illegal action."""
    handler = _HANDLERS.get(type(action))
    try:
        if handler is None:
            raise IllegalTransition(f"Unsupported action {action!r}")
        return handler(state, action, snapshot, search)
    except IllegalTransition as exc:
        logger.debug("Rejected %r: %s", action, exc)
        return Transition(state, rejected=str(exc))


# ── Views over a snapshot ───────────────────────────────────────────


def _rebase_browse(view: BrowseView, snapshot: SessionSnapshot) -> Optional[BrowseView]:
    if isinstance(view, SubtreeView) and view.focus_id not in snapshot.graph:
        return None
    return view


def _rebase_view(view: NavigationView, snapshot: SessionSnapshot) -> Optional[NavigationView]:
    if isinstance(view, SearchView):
        origin = _rebase_browse(view.origin, snapshot) or RootView()
        return SearchView(
            query=view.query,
            matches=tuple(m for m in view.matches if m in snapshot.graph),
            origin=origin,
        )
    return _rebase_browse(view, snapshot)


def rebase(state: NavigationState, snapshot: SessionSnapshot) -> NavigationState:
    """Drop views and matches that refer to sessions missing from ``snapshot``.

    Used when a rescan or sync replaces the snapshot under an open picker.
    """
    stack = tuple(
        rebased
        for rebased in (_rebase_view(view, snapshot) for view in state.stack)
        if rebased is not None
    )
    view = _rebase_view(state.view, snapshot)
    while view is None and stack:
        view, stack = stack[-1], stack[:-1]
    return NavigationState(view=view or RootView(), stack=stack)


def _row(session_id: str, snapshot: SessionSnapshot, focused: bool = False, depth: int = 0) -> NavigationRow:
    return NavigationRow(
        session_id=session_id,
        focused=focused,
        has_children=snapshot.graph.has_children(session_id),
        depth=depth,
    )


def visible_rows(state: NavigationState, snapshot: SessionSnapshot) -> list[NavigationRow]:
    graph = snapshot.graph
    view = state.view
    if isinstance(view, SearchView):
        return [_row(session_id, snapshot) for session_id in view.matches if session_id in graph]
    if isinstance(view, SubtreeView):
        if view.focus_id not in graph:
            return []
        rows = [_row(view.focus_id, snapshot, focused=True)]
        rows.extend(_row(child, snapshot, depth=1) for child in graph.children_of(view.focus_id))
        return rows
    return [_row(session_id, snapshot) for session_id in graph.roots]


# ── Input vocabulary ────────────────────────────────────────────────

_KEY_ACTIONS: dict[str, Callable[[Optional[str]], Optional[Action]]] = {
    "esc": lambda selected: ExitSearchOrBack(),
    "right": lambda selected: DrillIn(selected) if selected else None,
    "left": lambda selected: Back(),
    "ctrl-s": lambda selected: EnterFullTextSearch(),
    "ctrl-f": lambda selected: ToggleNormalFilterMode(),
    "enter": lambda selected: Select(selected) if selected else None,
}


def action_for_key(key: str, selected_id: Optional[str] = None) -> Optional[Action]:
    """Map a key name from the input layer to an action, or None if unbound."""
    factory = _KEY_ACTIONS.get(key.strip().lower())
    return factory(selected_id) if factory else None
