"""
Provider abstraction for vendor-agnostic chat and function calling.
"""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

from ..config import ProviderConfig
from ..exceptions import MalformedResponse, TransportError
from ..transport import RequestsTransport, Transport
from ..types import FunctionSpec, RequestPayload, Response, Role, Turn

logger = logging.getLogger(__name__)

# (function name, vendor-shaped arguments) as found in a raw payload.
RawFunctionCall = Tuple[str, Any]


@runtime_checkable
class Provider(Protocol):
    """
    Interface every provider adapter must satisfy.

    Adapters translate turns into a vendor request, hand it to the transport,
    and translate the vendor body back into a normalized ``Response``. Vendor
    field names never leak past this boundary.
    """

    name: str
    single_function_call: bool

    def build_request(
        self,
        turns: Sequence[Turn],
        *,
        system_prompt: str = "",
        functions: Optional[Sequence[FunctionSpec]] = None,
        model: Optional[str] = None,
    ) -> RequestPayload:
        """Render the dialogue in the vendor's request layout."""
        ...

    def send(self, request: RequestPayload) -> Any:
        """Post the request and return the decoded vendor body."""
        ...

    def parse_response(self, body: Any, elapsed: float = 0.0) -> Response:
        """Normalize a vendor body; raises MalformedResponse when that is impossible."""
        ...

    def function_calls(self, body: Any) -> List[RawFunctionCall]:
        """Structured function-call markers present in a vendor body, in vendor order."""
        ...

    def complete(
        self,
        turns: Sequence[Turn],
        *,
        system_prompt: str = "",
        functions: Optional[Sequence[FunctionSpec]] = None,
        model: Optional[str] = None,
    ) -> Response:
        """Build, send and parse in one step."""
        ...


def strip_fences(text: str) -> str:
    """Drop markdown fence lines (```lang / ```) and keep everything else."""
    if "```" not in text:
        return text
    return "\n".join(line for line in text.splitlines() if not line.lstrip().startswith("```"))


def split_system(turns: Sequence[Turn], system_prompt: str = "") -> Tuple[str, List[Turn]]:
    """Separate SYSTEM turns from the conversation, joining them after ``system_prompt``."""
    system_parts = [system_prompt] if system_prompt else []
    rest: List[Turn] = []
    for turn in turns:
        if turn.role == Role.SYSTEM:
            if turn.content:
                system_parts.append(turn.content)
        else:
            rest.append(turn)
    return "\n".join(system_parts), rest


def merge_consecutive(messages: List[Dict[str, str]], key: str = "content") -> List[Dict[str, str]]:
    """Merge neighbouring messages with the same role for vendors that require alternation."""
    merged: List[Dict[str, str]] = []
    for message in messages:
        if merged and merged[-1]["role"] == message["role"]:
            merged[-1] = {**merged[-1], key: f"{merged[-1][key]}\n\n{message[key]}"}
        else:
            merged.append(dict(message))
    return merged


def error_detail(body: Any) -> Optional[str]:
    """Vendor error message embedded in a body, or None when the body is not an error."""
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if not error and body.get("type") != "error":
        return None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("type") or error)
    if isinstance(error, list) and error:
        return error_detail(error[0]) or error_detail({"error": error[0]}) or str(error)
    if error:
        return str(error)
    return str(body.get("message") or body)


def as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class HttpProvider:
    """
    Shared implementation for JSON-over-HTTPS vendors.

    Subclasses supply ``build_request``, ``parse_response`` and
    ``function_calls``; this base handles transport, error bodies and timing.
    """

    name = "http"
    single_function_call = True

    def __init__(self, config: ProviderConfig, transport: Optional[Transport] = None):
        self.config = config
        self.transport: Transport = transport or RequestsTransport(timeout=config.timeout)

    @property
    def model(self) -> str:
        return self.config.model

    def _expect(self, value: Any, kind: Any, what: str) -> Any:
        """Return ``value`` if it is a ``kind`` instance, else raise MalformedResponse."""
        if not isinstance(value, kind):
            kinds = kind if isinstance(kind, tuple) else (kind,)
            expected = " or ".join(k.__name__ for k in kinds)
            raise MalformedResponse(
                self.name, f"{what} should be {expected}, got {type(value).__name__}"
            )
        return value

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(self.config.extra_headers)
        return headers

    def build_request(
        self,
        turns: Sequence[Turn],
        *,
        system_prompt: str = "",
        functions: Optional[Sequence[FunctionSpec]] = None,
        model: Optional[str] = None,
    ) -> RequestPayload:
        raise NotImplementedError

    def parse_response(self, body: Any, elapsed: float = 0.0) -> Response:
        raise NotImplementedError

    def function_calls(self, body: Any) -> List[RawFunctionCall]:
        raise NotImplementedError

    def send(self, request: RequestPayload) -> Any:
        logger.debug("[%s] %s", self.name, request.describe())
        try:
            status, body = self.transport.post(request.url, request.headers, request.body)
        except TransportError as exc:
            raise TransportError(exc.detail, status=exc.status, provider=self.name) from exc
        except MalformedResponse as exc:
            raise MalformedResponse(self.name, exc.detail) from exc

        detail = error_detail(body)
        if status >= 400:
            if not detail:
                logger.debug("[%s] HTTP %s body: %r", self.name, status, body)
            raise TransportError(
                detail or "request rejected without an error message", status=status, provider=self.name
            )
        if detail:
            raise TransportError(detail, status=status, provider=self.name)
        return body

    def complete(
        self,
        turns: Sequence[Turn],
        *,
        system_prompt: str = "",
        functions: Optional[Sequence[FunctionSpec]] = None,
        model: Optional[str] = None,
    ) -> Response:
        request = self.build_request(
            turns, system_prompt=system_prompt, functions=functions, model=model
        )
        start = time.perf_counter()
        body = self.send(request)
        elapsed = time.perf_counter() - start
        try:
            response = self.parse_response(body, elapsed=elapsed)
        except (AttributeError, TypeError, KeyError, IndexError) as exc:
            raise MalformedResponse(self.name, f"Unexpected response shape: {exc}") from exc
        logger.debug(
            "[%s] finish=%s tokens=%s elapsed=%.3fs",
            self.name,
            response.finish_reason.value,
            response.usage,
            elapsed,
        )
        return response

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.config.model!r})"


__all__ = [
    "Provider",
    "HttpProvider",
    "RawFunctionCall",
    "strip_fences",
    "split_system",
    "merge_consecutive",
    "error_detail",
    "as_int",
]
