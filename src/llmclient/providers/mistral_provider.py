"""
Mistral chat completions adapter.

The wire format follows OpenAI's, with Mistral's own finish reasons and
``tool_choice`` instead of ``parallel_tool_calls``.
"""

from __future__ import annotations

from typing import Any, Dict, Sequence

from ..types import FinishReason, FunctionSpec
from .openai_provider import OpenAIProvider

_FINISH_REASONS = {
    "stop": FinishReason.STOP,
    "tool_calls": FinishReason.FUNCTION_CALL,
    "length": FinishReason.LENGTH,
    "model_length": FinishReason.LENGTH,
    "content_filter": FinishReason.SAFETY,
    "error": FinishReason.ERROR,
}


class MistralProvider(OpenAIProvider):
    """Adapter for Mistral's chat completions API."""

    name = "mistral"
    single_function_call = False
    disable_parallel_calls = False
    finish_reasons = _FINISH_REASONS

    def _tools(self, functions: Sequence[FunctionSpec]) -> Dict[str, Any]:
        tools = super()._tools(functions)
        tools["tool_choice"] = "auto"
        return tools


__all__ = ["MistralProvider"]
