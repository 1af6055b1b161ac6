"""
Tests for GeminiProvider (providers/gemini_provider.py) with canned payloads.

Tests cover:
- Request layout: contents/parts, model role, forged system exchange,
  generationConfig, safety settings, function declarations, auth header
- Merging consecutive same-role turns
- Text answers, fence stripping and usageMetadata
- functionCall parts and FUNCTION_CALL finish reason
- SAFETY / RECITATION / promptFeedback.blockReason / MAX_TOKENS
- Streamed (list) bodies
- Malformed bodies, including wrongly typed nested values, and vendor error bodies
- citationMetadata (base64 URIs) and safetyRatings
"""

from __future__ import annotations

import base64

import pytest

from llmclient.exceptions import MalformedResponse, TransportError
from llmclient.providers.gemini_provider import SYSTEM_ACKNOWLEDGEMENT, GeminiProvider, decode_uri
from llmclient.types import Citation, FinishReason, FunctionResult, FunctionSpec, SafetyRating, Turn

ADD = FunctionSpec(name="add", arguments=("a", "b"), description="Add two numbers")


def _body(parts, finish="STOP", usage=None):
    body = {"candidates": [{"content": {"role": "model", "parts": parts}, "finishReason": finish}]}
    if usage is not None:
        body["usageMetadata"] = usage
    return body


@pytest.fixture
def provider(make_config, fake_transport) -> GeminiProvider:
    return GeminiProvider(make_config("gemini", model="gemini-test"), transport=fake_transport)


class TestBuildRequest:
    """Tests for build_request()."""

    def test_url_and_headers(self, provider: GeminiProvider) -> None:
        request = provider.build_request([Turn.user("hi")])

        assert request.url == "https://gemini.example.com/v1beta/models/gemini-test:generateContent"
        assert request.headers["x-goog-api-key"] == "test-gemini-key"
        assert "Authorization" not in request.headers

    def test_model_override_in_url(self, provider: GeminiProvider) -> None:
        request = provider.build_request([Turn.user("hi")], model="gemini-other")
        assert "/models/gemini-other:" in request.url

    def test_contents_roles(self, provider: GeminiProvider) -> None:
        turns = [Turn.user("Q1"), Turn.assistant("A1"), Turn.user("Q2")]
        body = provider.build_request(turns).body

        assert body["contents"] == [
            {"role": "user", "parts": [{"text": "Q1"}]},
            {"role": "model", "parts": [{"text": "A1"}]},
            {"role": "user", "parts": [{"text": "Q2"}]},
        ]

    def test_system_forged_as_exchange(self, provider: GeminiProvider) -> None:
        turns = [Turn.system("Be terse."), Turn.user("Hello")]
        body = provider.build_request(turns, system_prompt="You are a bot.").body

        assert body["contents"][0] == {
            "role": "user",
            "parts": [{"text": "You are a bot.\nBe terse."}],
        }
        assert body["contents"][1] == {
            "role": "model",
            "parts": [{"text": SYSTEM_ACKNOWLEDGEMENT}],
        }
        assert body["contents"][2]["parts"] == [{"text": "Hello"}]

    def test_function_turn_sent_as_user_text(self, provider: GeminiProvider) -> None:
        turns = [
            Turn.user("What is 2+3?"),
            Turn.function(FunctionResult("add", ("2", "3"), "5")),
        ]
        body = provider.build_request(turns).body

        assert body["contents"] == [
            {"role": "user", "parts": [{"text": "What is 2+3?\n\nFunction add(2, 3) returned: 5"}]}
        ]

    def test_generation_config(self, make_config, fake_transport) -> None:
        provider = GeminiProvider(
            make_config("gemini", temperature=0.5, max_tokens=100), transport=fake_transport
        )
        body = provider.build_request([Turn.user("x")]).body

        assert body["generationConfig"] == {
            "temperature": 0.5,
            "maxOutputTokens": 100,
            "candidateCount": 1,
        }
        assert {s["threshold"] for s in body["safetySettings"]} == {"BLOCK_ONLY_HIGH"}

    def test_function_declarations(self, provider: GeminiProvider) -> None:
        body = provider.build_request([Turn.user("x")], functions=[ADD]).body

        [declaration] = body["tools"][0]["functionDeclarations"]
        assert declaration["name"] == "add"
        assert declaration["description"] == "Add two numbers"
        assert declaration["parameters"]["required"] == ["a", "b"]

    def test_no_tools_without_functions(self, provider: GeminiProvider) -> None:
        assert "tools" not in provider.build_request([Turn.user("x")]).body


class TestParseResponse:
    """Tests for parse_response() and function_calls()."""

    def test_text_answer_and_usage(self, provider: GeminiProvider) -> None:
        body = _body(
            [{"text": "The sum "}, {"text": "is 5."}],
            usage={"promptTokenCount": 12, "candidatesTokenCount": 4, "totalTokenCount": 16},
        )
        response = provider.parse_response(body, elapsed=0.25)

        assert response.text == "The sum is 5."
        assert response.finish_reason == FinishReason.STOP
        assert (response.usage.prompt_tokens, response.usage.completion_tokens) == (12, 4)
        assert response.usage.total_tokens == 16
        assert response.usage.elapsed_seconds == 0.25
        assert response.usage.provider == "gemini"
        assert response.raw_payload is body

    def test_fences_stripped(self, provider: GeminiProvider) -> None:
        response = provider.parse_response(_body([{"text": "```python\nprint(1)\n```"}]))
        assert response.text == "print(1)"

    def test_missing_usage_is_zero(self, provider: GeminiProvider) -> None:
        response = provider.parse_response(_body([{"text": "hi"}]))
        assert response.usage.total_tokens == 0

    def test_function_call(self, provider: GeminiProvider) -> None:
        body = _body([{"functionCall": {"name": "add", "args": {"a": "2", "b": "3"}}}])
        response = provider.parse_response(body)

        assert response.finish_reason == FinishReason.FUNCTION_CALL
        assert response.vendor_finish_reason == "STOP"
        assert provider.function_calls(body) == [("add", {"a": "2", "b": "3"})]

    @pytest.mark.parametrize("finish", ["SAFETY", "RECITATION", "PROHIBITED_CONTENT"])
    def test_safety_finish_reasons(self, provider: GeminiProvider, finish: str) -> None:
        response = provider.parse_response(_body([], finish=finish))

        assert response.finish_reason == FinishReason.SAFETY
        assert response.is_rejection
        assert response.vendor_finish_reason == finish

    def test_prompt_blocked(self, provider: GeminiProvider) -> None:
        body = {"promptFeedback": {"blockReason": "SAFETY"}, "usageMetadata": {"promptTokenCount": 8}}
        response = provider.parse_response(body)

        assert response.finish_reason == FinishReason.SAFETY
        assert response.text == ""
        assert response.usage.prompt_tokens == 8

    def test_max_tokens(self, provider: GeminiProvider) -> None:
        response = provider.parse_response(_body([{"text": "partial"}], finish="MAX_TOKENS"))
        assert response.finish_reason == FinishReason.LENGTH

    def test_unknown_finish_reason(self, provider: GeminiProvider) -> None:
        response = provider.parse_response(_body([{"text": "?"}], finish="SOMETHING_NEW"))
        assert response.finish_reason == FinishReason.OTHER

    def test_streamed_chunks(self, provider: GeminiProvider) -> None:
        body = [
            _body([{"text": "Hel"}], finish=None),
            _body(
                [{"text": "lo"}],
                usage={"promptTokenCount": 3, "candidatesTokenCount": 2, "totalTokenCount": 5},
            ),
        ]
        response = provider.parse_response(body)

        assert response.text == "Hello"
        assert response.finish_reason == FinishReason.STOP
        assert response.usage.total_tokens == 5

    @pytest.mark.parametrize("body", ["text", 42, {}, {"candidates": []}])
    def test_malformed(self, provider: GeminiProvider, body) -> None:
        with pytest.raises(MalformedResponse):
            provider.parse_response(body)

    @pytest.mark.parametrize(
        "body",
        [
            {"candidates": [{"content": "hello"}]},
            {"candidates": "hello"},
            {"candidates": ["hello"]},
            {"candidates": [{"content": {"parts": "hello"}}]},
            {"candidates": [{"content": {"parts": ["hello"]}}]},
            {"candidates": [{"content": {"parts": [{"text": 5}]}}]},
            {"candidates": [{"content": {"parts": [{"text": "hi"}]}, "finishReason": 1}]},
            {"promptFeedback": "blocked"},
            _body([{"text": "hi"}], usage="n/a"),
            {"candidates": [{"content": {"parts": [{"text": "hi"}]}, "safetyRatings": "none"}]},
        ],
    )
    def test_wrongly_typed_nested_values(self, provider: GeminiProvider, body) -> None:
        with pytest.raises(MalformedResponse) as exc_info:
            provider.parse_response(body)

        assert exc_info.value.provider == "gemini"

    def test_function_calls_tolerates_bad_shapes(self, provider: GeminiProvider) -> None:
        assert provider.function_calls({"candidates": [{"content": "hello"}]}) == []
        assert provider.function_calls({"candidates": ["x"]}) == []


class TestCitationsAndSafety:
    """Tests for citationMetadata and safetyRatings."""

    def test_citations(self, provider: GeminiProvider) -> None:
        encoded = base64.b64encode(b"https://example.com/source").decode()
        body = _body([{"text": "Quoted text"}])
        body["candidates"][0]["citationMetadata"] = {
            "citations": [
                {
                    "startIndex": 0,
                    "endIndex": 11,
                    "uri": encoded,
                    "license": "mit",
                    "publicationDate": {"year": 2020, "month": 5, "day": 1},
                },
                {"uri": "https://plain.example.org/page"},
            ]
        }

        citations = provider.parse_response(body).citations

        assert citations == [
            Citation(
                uri="https://example.com/source",
                start_index=0,
                end_index=11,
                license="mit",
                publication_date="2020-5-1",
            ),
            Citation(uri="https://plain.example.org/page"),
        ]
        assert str(citations[0]) == (
            "Citation:\n"
            "    Uri: https://example.com/source\n"
            "    Index range: 0 - 11\n"
            "    License: mit\n"
            "    Publication Date: 2020-5-1"
        )

    def test_safety_ratings(self, provider: GeminiProvider) -> None:
        body = _body([], finish="SAFETY")
        body["candidates"][0]["safetyRatings"] = [
            {"category": "HARM_CATEGORY_HARASSMENT", "probability": "NEGLIGIBLE"},
            {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "probability": "HIGH", "blocked": True},
        ]

        response = provider.parse_response(body)

        assert response.safety_ratings == [
            SafetyRating("HARM_CATEGORY_HARASSMENT", "NEGLIGIBLE"),
            SafetyRating("HARM_CATEGORY_DANGEROUS_CONTENT", "HIGH", blocked=True),
        ]
        assert str(response.safety_ratings[1]) == "HARM_CATEGORY_DANGEROUS_CONTENT: HIGH (blocked)"

    def test_prompt_feedback_ratings(self, provider: GeminiProvider) -> None:
        body = {
            "promptFeedback": {
                "blockReason": "SAFETY",
                "safetyRatings": [{"category": "HARM_CATEGORY_HATE_SPEECH", "probability": "HIGH"}],
            }
        }

        assert provider.parse_response(body).safety_ratings == [
            SafetyRating("HARM_CATEGORY_HATE_SPEECH", "HIGH")
        ]

    def test_absent_metadata(self, provider: GeminiProvider) -> None:
        response = provider.parse_response(_body([{"text": "hi"}]))

        assert response.citations == []
        assert response.safety_ratings == []

    @pytest.mark.parametrize(
        "uri, expected",
        [
            (base64.b64encode("https://example.com/ü".encode()).decode(), "https://example.com/ü"),
            ("https://example.com/a", "https://example.com/a"),
            ("https://exämple.com", "https://exämple.com"),
            ("", ""),
        ],
    )
    def test_decode_uri(self, uri: str, expected: str) -> None:
        assert decode_uri(uri) == expected


class TestComplete:
    """Tests for complete() through the fake transport."""

    def test_round_trip(self, provider: GeminiProvider, fake_transport) -> None:
        fake_transport.queue(_body([{"text": "Hi there"}]))
        response = provider.complete([Turn.user("Hello")])

        assert response.text == "Hi there"
        assert fake_transport.requests[0]["url"].endswith("gemini-test:generateContent")

    def test_http_error_uses_vendor_message(self, provider: GeminiProvider, fake_transport) -> None:
        fake_transport.queue({"error": {"code": 400, "message": "API key not valid"}}, status=400)

        with pytest.raises(TransportError) as exc_info:
            provider.complete([Turn.user("Hello")])

        assert exc_info.value.status == 400
        assert exc_info.value.provider == "gemini"
        assert "API key not valid" in str(exc_info.value)

    def test_transport_failure_tagged_with_provider(self, provider: GeminiProvider, fake_transport) -> None:
        fake_transport.replies.append(TransportError("timed out"))

        with pytest.raises(TransportError) as exc_info:
            provider.complete([Turn.user("Hello")])

        assert exc_info.value.provider == "gemini"
