"""
Token usage and timing tracking for vendor calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class UsageStats:
    """
    Tracks token usage and timing for a single vendor call.

    Attributes:
        prompt_tokens: Number of tokens in the prompt/input.
        completion_tokens: Number of tokens in the completion/output.
        total_tokens: Total tokens used (prompt + completion).
        model: Model name used for this call.
        provider: Provider name (gemini, gpt, claude, mistral, ...).
        elapsed_seconds: Wall-clock time of the round trip.
    """

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    model: str = ""
    provider: str = ""
    elapsed_seconds: float = 0.0

    def __post_init__(self):
        """Ensure total_tokens is consistent."""
        if self.total_tokens == 0 and (self.prompt_tokens or self.completion_tokens):
            self.total_tokens = self.prompt_tokens + self.completion_tokens

    def __add__(self, other: "UsageStats") -> "UsageStats":
        return UsageStats(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            model=self.model or other.model,
            provider=self.provider or other.provider,
            elapsed_seconds=self.elapsed_seconds + other.elapsed_seconds,
        )

    def __str__(self) -> str:
        return f"{self.prompt_tokens} + {self.completion_tokens} = {self.total_tokens}"


@dataclass
class DialogueUsage:
    """
    Aggregates usage stats across every call made for one dialogue.

    Counters only grow until the dialogue is reset.

    Attributes:
        total_prompt_tokens: Cumulative prompt tokens across all calls.
        total_completion_tokens: Cumulative completion tokens across all calls.
        total_tokens: Cumulative total tokens across all calls.
        total_elapsed_seconds: Cumulative wall-clock time of vendor calls.
        function_usage: Dictionary mapping function names to call counts.
        calls: List of UsageStats for each vendor call.
    """

    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_tokens: int = 0
    total_elapsed_seconds: float = 0.0

    function_usage: Dict[str, int] = field(default_factory=dict)
    calls: List[UsageStats] = field(default_factory=list)

    def add_usage(self, stats: UsageStats, function_name: Optional[str] = None) -> None:
        """
        Add usage stats from a single vendor call.

        Args:
            stats: UsageStats object from a vendor call.
            function_name: Optional function name if this call led to a function invocation.
        """
        self.total_prompt_tokens += stats.prompt_tokens
        self.total_completion_tokens += stats.completion_tokens
        self.total_tokens += stats.total_tokens
        self.total_elapsed_seconds += stats.elapsed_seconds
        self.calls.append(stats)

        if function_name:
            self.function_usage[function_name] = self.function_usage.get(function_name, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize to dictionary for logging/display.

        Returns:
            Dictionary containing all usage statistics.
        """
        return {
            "total_tokens": self.total_tokens,
            "total_prompt_tokens": self.total_prompt_tokens,
            "total_completion_tokens": self.total_completion_tokens,
            "total_elapsed_seconds": round(self.total_elapsed_seconds, 3),
            "function_usage": dict(self.function_usage),
            "calls": len(self.calls),
        }

    def __str__(self) -> str:
        """
        Pretty print usage summary.

        Returns:
            Formatted string with usage statistics.
        """
        lines = [
            "\n" + "=" * 60,
            "📊 Usage Summary",
            "=" * 60,
            f"Total Tokens: {self.total_tokens:,}",
            f"  - Prompt: {self.total_prompt_tokens:,}",
            f"  - Completion: {self.total_completion_tokens:,}",
            f"Elapsed: {self.total_elapsed_seconds:.3f}s",
            f"Calls: {len(self.calls)}",
        ]

        if self.function_usage:
            lines.append("\nFunction Usage:")
            for name, count in sorted(self.function_usage.items(), key=lambda x: -x[1]):
                lines.append(f"  - {name}: {count} calls")

        lines.append("=" * 60 + "\n")
        return "\n".join(lines)


__all__ = ["UsageStats", "DialogueUsage"]
