"""Classify user-message text as a conversational turn or system noise."""
from __future__ import annotations

import re
from enum import Enum
from typing import Callable


class MessageKind(str, Enum):
    EMPTY = "empty"
    COMMAND_TAG = "command_tag"
    BRACKETED_OUTPUT = "bracketed_output"
    SLASH_COMMAND = "slash_command"
    USER_CONTENT = "user_content"


class Classification(str, Enum):
    CONVERSATIONAL_TURN = "turn"
    SYSTEM_NOISE = "noise"


# <command-name>, <command-message>, <local-command-stdout>, <system-reminder>, ...
_COMMAND_ENVELOPE_PATTERN = re.compile(r"^<[A-Za-z!/?]")


def _is_empty(text: str) -> bool:
    return not text


def _is_command_envelope(text: str) -> bool:
    return bool(_COMMAND_ENVELOPE_PATTERN.match(text))


def _is_bracket_enclosed(text: str) -> bool:
    return text.startswith("[") and text.endswith("]")


def _is_slash_command(text: str) -> bool:
    return text.startswith("/")


# Order matters: the first matching predicate decides the kind.
_RULES: tuple[tuple[Callable[[str], bool], MessageKind], ...] = (
    (_is_empty, MessageKind.EMPTY),
    (_is_command_envelope, MessageKind.COMMAND_TAG),
    (_is_bracket_enclosed, MessageKind.BRACKETED_OUTPUT),
    (_is_slash_command, MessageKind.SLASH_COMMAND),
)


def classify_kind(text: str) -> MessageKind:
    stripped = (text or "").strip()
    for predicate, kind in _RULES:
        if predicate(stripped):
            return kind
    return MessageKind.USER_CONTENT


def classify(text: str) -> Classification:
    if classify_kind(text) is MessageKind.USER_CONTENT:
        return Classification.CONVERSATIONAL_TURN
    return Classification.SYSTEM_NOISE


def counts_as_turn(text: str) -> bool:
    return classify(text) is Classification.CONVERSATIONAL_TURN
