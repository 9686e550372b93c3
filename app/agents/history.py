"""Conversation history as seen by the pipeline (read-only)."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Literal

Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class ConversationTurn:
    """One prior message. Order within a history is significant."""

    role: Role
    content: str


def to_turns(
    history: Iterable[ConversationTurn | Mapping[str, str]] | None,
) -> tuple[ConversationTurn, ...]:
    """Normalise dicts or turns into an immutable tuple of turns."""
    if not history:
        return ()
    turns = []
    for item in history:
        if isinstance(item, ConversationTurn):
            turns.append(item)
        else:
            role = "assistant" if item.get("role") == "assistant" else "user"
            turns.append(ConversationTurn(role=role, content=item.get("content", "")))
    return tuple(turns)


def recent_turns(
    history: Sequence[ConversationTurn], count: int,
) -> Sequence[ConversationTurn]:
    """The last `count` turns, oldest first."""
    if count <= 0:
        return ()
    return history[-count:]
