"""
Dialogue state: the ordered turn history and cumulative usage of one conversation.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .types import Role, Turn
from .usage import DialogueUsage, UsageStats


class Dialogue:
    """
    Ordered, append-only conversation history with cumulative token usage.

    A dialogue is owned by a single session and mutated by one writer at a
    time. Turns are only ever appended; the whole sequence can be cleared with
    ``reset()``, which also zeroes the usage counters.

    Example:
        >>> dialogue = Dialogue(system_prompt="Answer briefly.")
        >>> dialogue.append(Turn.user("Hello"))
        >>> [t.role.value for t in dialogue.history()]
        ['system', 'user']
        >>> dialogue.reset()
        >>> len(dialogue)
        0
    """

    def __init__(self, system_prompt: Optional[str] = None):
        """
        Initialize an empty dialogue, optionally seeded with a SYSTEM turn.

        Args:
            system_prompt: Instructions placed as the first turn. Empty or
                None leaves the dialogue empty.
        """
        self._turns: List[Turn] = []
        self._usage = DialogueUsage()
        if system_prompt:
            self._turns.append(Turn.system(system_prompt))

    def append(self, turn: Turn) -> None:
        """Append a single turn to the end of the conversation."""
        self._turns.append(turn)

    def extend(self, turns: Iterable[Turn]) -> None:
        """Append several turns, preserving their order."""
        self._turns.extend(turns)

    def history(self) -> List[Turn]:
        """
        Retrieve the complete conversation history.

        Returns:
            List of all turns in insertion order.
        """
        return list(self._turns)

    def reset(self) -> None:
        """Clear all turns and usage counters. Safe to call repeatedly."""
        self._turns.clear()
        self._usage = DialogueUsage()

    def record_usage(self, stats: UsageStats, function_name: Optional[str] = None) -> None:
        """Add one vendor call's token counts to the running totals."""
        self._usage.add_usage(stats, function_name=function_name)

    def usage_summary(self) -> DialogueUsage:
        """Return the cumulative usage since creation or the last reset."""
        return self._usage

    @property
    def system_prompt(self) -> str:
        """Concatenated content of every SYSTEM turn, newline separated."""
        return "\n".join(t.content for t in self._turns if t.role == Role.SYSTEM)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the dialogue to a dictionary for debugging or logging.

        Returns:
            Dictionary containing all turns and the usage summary.
        """
        return {
            "turn_count": len(self._turns),
            "turns": [turn.to_dict() for turn in self._turns],
            "usage": self._usage.to_dict(),
        }

    def __len__(self) -> int:
        """Return the number of turns in history."""
        return len(self._turns)

    def __bool__(self) -> bool:
        """Always return True so a dialogue is truthy even when empty."""
        return True

    def __repr__(self) -> str:
        return (
            f"Dialogue(turns={len(self._turns)}, "
            f"total_tokens={self._usage.total_tokens})"
        )


__all__ = ["Dialogue"]
