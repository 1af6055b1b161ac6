"""
OpenAI Chat Completions adapter and the vendors that reuse its wire format.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import MalformedResponse
from ..types import FinishReason, FunctionSpec, RequestPayload, Response, Role, Turn
from ..usage import UsageStats
from .base import HttpProvider, RawFunctionCall, as_int, split_system, strip_fences

_FINISH_REASONS = {
    "stop": FinishReason.STOP,
    "tool_calls": FinishReason.FUNCTION_CALL,
    "function_call": FinishReason.FUNCTION_CALL,
    "length": FinishReason.LENGTH,
    "content_filter": FinishReason.SAFETY,
}


class OpenAIProvider(HttpProvider):
    """Adapter that speaks to OpenAI's Chat Completions API."""

    name = "gpt"
    single_function_call = False
    # Ask for at most one tool call per reply.
    disable_parallel_calls = True
    finish_reasons: Dict[str, FinishReason] = _FINISH_REASONS

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _format_messages(self, turns: Sequence[Turn], system_prompt: str) -> List[Dict[str, str]]:
        system_text, rest = split_system(turns, system_prompt)
        payload = []
        if system_text:
            payload.append({"role": "system", "content": system_text})
        for turn in rest:
            role = Role.USER.value if turn.role == Role.FUNCTION else turn.role.value
            payload.append({"role": role, "content": turn.content})
        return payload

    def _tools(self, functions: Sequence[FunctionSpec]) -> Dict[str, Any]:
        tools = {
            "tools": [
                {
                    "type": "function",
                    "function": {
                        "name": spec.name,
                        "description": spec.description,
                        "parameters": spec.to_json_schema(),
                    },
                }
                for spec in functions
            ]
        }
        if self.disable_parallel_calls:
            tools["parallel_tool_calls"] = False
        return tools

    def build_request(
        self,
        turns: Sequence[Turn],
        *,
        system_prompt: str = "",
        functions: Optional[Sequence[FunctionSpec]] = None,
        model: Optional[str] = None,
    ) -> RequestPayload:
        body: Dict[str, Any] = {
            "model": model or self.config.model,
            "messages": self._format_messages(turns, system_prompt),
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if functions:
            body.update(self._tools(functions))
        return RequestPayload(url=self.config.endpoint(model), headers=self._headers(), body=body)

    def _message(self, body: Any) -> Dict[str, Any]:
        if not isinstance(body, dict):
            raise MalformedResponse(self.name, f"Expected a JSON object, got {type(body).__name__}")
        choices = body.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise MalformedResponse(self.name, "Response has no choices")
        message = choices[0].get("message")
        if not isinstance(message, dict):
            raise MalformedResponse(self.name, "First choice has no message")
        return message

    def _content_text(self, content: Any) -> str:
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        chunks = self._expect(content, list, "message content")
        texts = []
        for chunk in chunks:
            chunk = self._expect(chunk, dict, "content chunk")
            if "text" in chunk:
                texts.append(self._expect(chunk["text"], str, "content chunk text"))
        return "".join(texts)

    def _check_tool_calls(self, message: Dict[str, Any]) -> None:
        for tool_call in self._expect(message.get("tool_calls") or [], list, "tool_calls"):
            tool_call = self._expect(tool_call, dict, "tool call")
            self._expect(tool_call.get("function") or {}, dict, "tool call function")
        self._expect(message.get("function_call") or {}, dict, "function_call")

    def function_calls(self, body: Any) -> List[RawFunctionCall]:
        try:
            message = self._message(body)
        except MalformedResponse:
            return []
        calls: List[RawFunctionCall] = []
        tool_calls = message.get("tool_calls")
        for tool_call in tool_calls if isinstance(tool_calls, list) else []:
            function = tool_call.get("function") if isinstance(tool_call, dict) else None
            if isinstance(function, dict) and function.get("name"):
                calls.append((function["name"], function.get("arguments")))
        # Legacy single function_call field.
        legacy = message.get("function_call")
        if not calls and isinstance(legacy, dict) and legacy.get("name"):
            calls.append((legacy["name"], legacy.get("arguments")))
        return calls

    def _usage(self, body: Dict[str, Any], elapsed: float) -> UsageStats:
        usage = self._expect(body.get("usage") or {}, dict, "usage")
        return UsageStats(
            prompt_tokens=as_int(usage.get("prompt_tokens")),
            completion_tokens=as_int(usage.get("completion_tokens")),
            total_tokens=as_int(usage.get("total_tokens")),
            model=body.get("model") or self.config.model,
            provider=self.name,
            elapsed_seconds=elapsed,
        )

    def parse_response(self, body: Any, elapsed: float = 0.0) -> Response:
        message = self._message(body)
        vendor_reason = self._expect(body["choices"][0].get("finish_reason") or "", str, "finish_reason")
        text = self._content_text(message.get("content"))
        self._check_tool_calls(message)
        usage = self._usage(body, elapsed)

        if message.get("refusal"):
            finish_reason = FinishReason.SAFETY
            text = text or str(message["refusal"])
        elif self.function_calls(body):
            finish_reason = FinishReason.FUNCTION_CALL
        elif not vendor_reason:
            finish_reason = FinishReason.STOP
        else:
            finish_reason = self.finish_reasons.get(vendor_reason, FinishReason.OTHER)

        return Response(
            text=strip_fences(text).strip(),
            finish_reason=finish_reason,
            usage=usage,
            raw_payload=body,
            provider=self.name,
            vendor_finish_reason=vendor_reason,
        )


class GroqProvider(OpenAIProvider):
    """Groq's OpenAI-compatible endpoint."""

    name = "groq"


class DeepSeekProvider(OpenAIProvider):
    """DeepSeek's OpenAI-compatible endpoint."""

    name = "deepseek"
    finish_reasons = {
        **_FINISH_REASONS,
        "insufficient_system_resource": FinishReason.ERROR,
    }


__all__ = ["OpenAIProvider", "GroqProvider", "DeepSeekProvider"]
