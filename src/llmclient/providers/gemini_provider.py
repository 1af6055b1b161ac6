"""
Google Gemini adapter for the ``generateContent`` REST endpoint.

Gemini has no system role in ``contents``; the system text is forged as an
opening user/model exchange so every model version honours it.
"""

from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import MalformedResponse
from ..types import (
    Citation,
    FinishReason,
    FunctionSpec,
    RequestPayload,
    Response,
    Role,
    SafetyRating,
    Turn,
)
from ..usage import UsageStats
from .base import HttpProvider, RawFunctionCall, as_int, merge_consecutive, split_system, strip_fences

SYSTEM_ACKNOWLEDGEMENT = "Understood."

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
SAFETY_THRESHOLD = "BLOCK_ONLY_HIGH"

_FINISH_REASONS = {
    "STOP": FinishReason.STOP,
    "MAX_TOKENS": FinishReason.LENGTH,
    "SAFETY": FinishReason.SAFETY,
    "RECITATION": FinishReason.SAFETY,
    "BLOCKLIST": FinishReason.SAFETY,
    "PROHIBITED_CONTENT": FinishReason.SAFETY,
    "SPII": FinishReason.SAFETY,
    "IMAGE_SAFETY": FinishReason.SAFETY,
    "MALFORMED_FUNCTION_CALL": FinishReason.ERROR,
}

_ROLES = {
    Role.USER: "user",
    Role.FUNCTION: "user",
    Role.ASSISTANT: "model",
}


def decode_uri(uri: str) -> str:
    """Citation URIs may arrive base64-encoded; decode them when they are."""
    try:
        decoded = base64.b64decode(uri, validate=True).decode("utf-8")
    except ValueError:
        return uri
    return decoded if decoded.isprintable() else uri


class GeminiProvider(HttpProvider):
    """Adapter for Google's Gemini models."""

    name = "gemini"
    single_function_call = True

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["x-goog-api-key"] = self.config.api_key
        return headers

    def _contents(self, turns: Sequence[Turn], system_prompt: str) -> List[Dict[str, Any]]:
        system_text, rest = split_system(turns, system_prompt)
        messages = []
        if system_text:
            messages.append({"role": "user", "text": system_text})
            messages.append({"role": "model", "text": SYSTEM_ACKNOWLEDGEMENT})
        messages.extend({"role": _ROLES[turn.role], "text": turn.content} for turn in rest)
        return [
            {"role": message["role"], "parts": [{"text": message["text"]}]}
            for message in merge_consecutive(messages, key="text")
        ]

    def build_request(
        self,
        turns: Sequence[Turn],
        *,
        system_prompt: str = "",
        functions: Optional[Sequence[FunctionSpec]] = None,
        model: Optional[str] = None,
    ) -> RequestPayload:
        body: Dict[str, Any] = {
            "contents": self._contents(turns, system_prompt),
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_tokens,
                "candidateCount": 1,
            },
            "safetySettings": [
                {"category": category, "threshold": SAFETY_THRESHOLD}
                for category in SAFETY_CATEGORIES
            ],
        }
        if functions:
            body["tools"] = [
                {
                    "functionDeclarations": [
                        {
                            "name": spec.name,
                            "description": spec.description,
                            "parameters": spec.to_json_schema(),
                        }
                        for spec in functions
                    ]
                }
            ]
        return RequestPayload(url=self.config.endpoint(model), headers=self._headers(), body=body)

    @staticmethod
    def _chunks(body: Any) -> List[Dict[str, Any]]:
        # streamGenerateContent answers with a list of partial responses.
        if isinstance(body, list):
            return [chunk for chunk in body if isinstance(chunk, dict)]
        if isinstance(body, dict):
            return [body]
        return []

    def _parts(self, body: Any) -> List[Dict[str, Any]]:
        parts: List[Dict[str, Any]] = []
        for chunk in self._chunks(body):
            candidates = chunk.get("candidates")
            if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
                continue
            content = candidates[0].get("content")
            chunk_parts = content.get("parts") if isinstance(content, dict) else None
            if isinstance(chunk_parts, list):
                parts.extend(part for part in chunk_parts if isinstance(part, dict))
        return parts

    def function_calls(self, body: Any) -> List[RawFunctionCall]:
        calls: List[RawFunctionCall] = []
        for part in self._parts(body):
            call = part.get("functionCall")
            if isinstance(call, dict) and call.get("name"):
                calls.append((call["name"], call.get("args") or {}))
        return calls

    def _candidate(self, chunk: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """First candidate of a chunk with its nested shapes checked, or None."""
        candidates = self._expect(chunk.get("candidates") or [], list, "candidates")
        if not candidates:
            return None
        candidate = self._expect(candidates[0], dict, "candidate")
        self._expect(candidate.get("finishReason") or "", str, "finishReason")
        content = self._expect(candidate.get("content") or {}, dict, "candidate content")
        for part in self._expect(content.get("parts") or [], list, "content parts"):
            part = self._expect(part, dict, "content part")
            self._expect(part.get("text", ""), str, "part text")
            self._expect(part.get("functionCall") or {}, dict, "functionCall")
        return candidate

    def _citations(self, candidate: Dict[str, Any]) -> List[Citation]:
        metadata = self._expect(candidate.get("citationMetadata") or {}, dict, "citationMetadata")
        sources = metadata.get("citations") or metadata.get("citationSources") or []
        citations = []
        for source in self._expect(sources, list, "citations"):
            source = self._expect(source, dict, "citation")
            date = source.get("publicationDate")
            if isinstance(date, dict):
                date = "-".join(str(date.get(key, "")) for key in ("year", "month", "day"))
            citations.append(
                Citation(
                    uri=decode_uri(str(source.get("uri") or "")),
                    start_index=as_int(source["startIndex"]) if "startIndex" in source else None,
                    end_index=as_int(source["endIndex"]) if "endIndex" in source else None,
                    license=str(source.get("license") or ""),
                    publication_date=str(date or ""),
                )
            )
        return citations

    def _safety_ratings(self, candidate: Dict[str, Any]) -> List[SafetyRating]:
        ratings = []
        for rating in self._expect(candidate.get("safetyRatings") or [], list, "safetyRatings"):
            rating = self._expect(rating, dict, "safety rating")
            ratings.append(
                SafetyRating(
                    category=str(rating.get("category") or ""),
                    probability=str(rating.get("probability") or ""),
                    blocked=bool(rating.get("blocked")),
                )
            )
        return ratings

    def parse_response(self, body: Any, elapsed: float = 0.0) -> Response:
        chunks = self._chunks(body)
        if not chunks:
            raise MalformedResponse(self.name, f"Expected a JSON object, got {type(body).__name__}")

        vendor_reason = ""
        prompt_tokens = completion_tokens = total_tokens = 0
        has_candidates = False
        citations: List[Citation] = []
        safety_ratings: List[SafetyRating] = []
        for chunk in chunks:
            candidate = self._candidate(chunk)
            if candidate is not None:
                has_candidates = True
                vendor_reason = candidate.get("finishReason") or vendor_reason
                citations.extend(self._citations(candidate))
                # Streamed chunks carry the ratings so far; the last one wins.
                safety_ratings = self._safety_ratings(candidate) or safety_ratings
            feedback = self._expect(chunk.get("promptFeedback") or {}, dict, "promptFeedback")
            block = feedback.get("blockReason")
            if block:
                vendor_reason = str(block)
                safety_ratings = self._safety_ratings(feedback) or safety_ratings
            metadata = self._expect(chunk.get("usageMetadata") or {}, dict, "usageMetadata")
            # Streamed chunks repeat running totals; the last one wins.
            prompt_tokens = as_int(metadata.get("promptTokenCount")) or prompt_tokens
            completion_tokens = as_int(metadata.get("candidatesTokenCount")) or completion_tokens
            total_tokens = as_int(metadata.get("totalTokenCount")) or total_tokens

        if not has_candidates and not vendor_reason:
            raise MalformedResponse(self.name, "Response has neither candidates nor promptFeedback")

        text = "".join(part.get("text", "") for part in self._parts(body))

        if self.function_calls(body):
            finish_reason = FinishReason.FUNCTION_CALL
        elif not has_candidates:
            # Prompt blocked before generation.
            finish_reason = FinishReason.SAFETY
        elif not vendor_reason:
            finish_reason = FinishReason.STOP
        else:
            finish_reason = _FINISH_REASONS.get(vendor_reason, FinishReason.OTHER)

        usage = UsageStats(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            model=self.config.model,
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
            citations=citations,
            safety_ratings=safety_ratings,
        )


__all__ = ["GeminiProvider", "decode_uri"]
