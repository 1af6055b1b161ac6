"""
Anthropic Claude adapter for the Messages API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ..config import DEFAULT_ANTHROPIC_VERSION
from ..exceptions import MalformedResponse
from ..types import FinishReason, FunctionSpec, RequestPayload, Response, Role, Turn
from ..usage import UsageStats
from .base import HttpProvider, RawFunctionCall, as_int, merge_consecutive, split_system, strip_fences

_FINISH_REASONS = {
    "end_turn": FinishReason.STOP,
    "stop_sequence": FinishReason.STOP,
    "tool_use": FinishReason.FUNCTION_CALL,
    "max_tokens": FinishReason.LENGTH,
    "refusal": FinishReason.SAFETY,
}


class AnthropicProvider(HttpProvider):
    """Adapter for Anthropic's Messages API."""

    name = "claude"
    single_function_call = True

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["x-api-key"] = self.config.api_key
        headers["anthropic-version"] = self.config.version or DEFAULT_ANTHROPIC_VERSION
        return headers

    def _format_messages(self, turns: Sequence[Turn]) -> List[Dict[str, str]]:
        payload = []
        for turn in turns:
            role = "assistant" if turn.role == Role.ASSISTANT else "user"
            payload.append({"role": role, "content": turn.content})
        # Claude requires alternating roles starting with a user message.
        merged = merge_consecutive(payload)
        if merged and merged[0]["role"] != "user":
            merged.insert(0, {"role": "user", "content": "(conversation start)"})
        return merged

    def build_request(
        self,
        turns: Sequence[Turn],
        *,
        system_prompt: str = "",
        functions: Optional[Sequence[FunctionSpec]] = None,
        model: Optional[str] = None,
    ) -> RequestPayload:
        system_text, rest = split_system(turns, system_prompt)
        body: Dict[str, Any] = {
            "model": model or self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": self._format_messages(rest),
        }
        if system_text:
            body["system"] = system_text
        if functions:
            body["tools"] = [
                {
                    "name": spec.name,
                    "description": spec.description,
                    "input_schema": spec.to_json_schema(),
                }
                for spec in functions
            ]
            body["tool_choice"] = {"type": "auto", "disable_parallel_tool_use": True}
        return RequestPayload(url=self.config.endpoint(model), headers=self._headers(), body=body)

    def _content(self, body: Any) -> List[Any]:
        if not isinstance(body, dict):
            raise MalformedResponse(self.name, f"Expected a JSON object, got {type(body).__name__}")
        content = body.get("content")
        if not isinstance(content, list):
            raise MalformedResponse(self.name, "Response has no content list")
        return content

    def function_calls(self, body: Any) -> List[RawFunctionCall]:
        try:
            blocks = [block for block in self._content(body) if isinstance(block, dict)]
        except MalformedResponse:
            return []
        return [
            (block["name"], block.get("input") or {})
            for block in blocks
            if block.get("type") == "tool_use" and block.get("name")
        ]

    def parse_response(self, body: Any, elapsed: float = 0.0) -> Response:
        blocks = [self._expect(block, dict, "content block") for block in self._content(body)]
        vendor_reason = self._expect(body.get("stop_reason") or "", str, "stop_reason")
        text = "".join(
            self._expect(block.get("text", ""), str, "text block")
            for block in blocks
            if block.get("type") == "text"
        )
        for block in blocks:
            if block.get("type") == "tool_use":
                self._expect(block.get("input") or {}, dict, "tool_use input")

        if self.function_calls(body):
            finish_reason = FinishReason.FUNCTION_CALL
        elif not vendor_reason:
            finish_reason = FinishReason.STOP
        else:
            finish_reason = _FINISH_REASONS.get(vendor_reason, FinishReason.OTHER)

        usage_data = self._expect(body.get("usage") or {}, dict, "usage")
        usage = UsageStats(
            prompt_tokens=as_int(usage_data.get("input_tokens")),
            completion_tokens=as_int(usage_data.get("output_tokens")),
            model=body.get("model") or self.config.model,
            provider=self.name,
            elapsed_seconds=elapsed,
        )
        return Response(
            text=strip_fences(text).strip(),
            finish_reason=finish_reason,
            usage=usage,
            raw_payload=body,
            provider=self.name,
            vendor_finish_reason=vendor_reason,
        )


__all__ = ["AnthropicProvider"]
