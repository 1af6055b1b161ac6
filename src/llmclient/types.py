"""
Core dialogue, function and response types for the LLM client.

These primitives are provider-agnostic and are reused across adapters,
the extractor, the orchestrator, and tests.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from .usage import UsageStats


class Role(str, Enum):
    """Conversation role."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"


class FinishReason(str, Enum):
    """Normalized reason a vendor stopped generating."""

    STOP = "stop"
    FUNCTION_CALL = "function_call"
    LENGTH = "length"
    SAFETY = "safety"
    ERROR = "error"
    OTHER = "other"


@dataclass(frozen=True)
class FunctionResult:
    """Outcome of a locally executed function, attached to a FUNCTION turn."""

    name: str
    arguments: Tuple[str, ...]
    result: str

    def call_text(self) -> str:
        return f"{self.name}({', '.join(self.arguments)})"


@dataclass(frozen=True)
class Turn:
    """
    One message unit in a conversation.

    Turns are immutable once created; a dialogue only ever appends them. A
    FUNCTION turn carries the executed call in ``function_result`` so adapters
    can render it however their vendor expects.
    """

    role: Role
    content: str
    function_result: Optional[FunctionResult] = None

    @classmethod
    def system(cls, content: str) -> "Turn":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Turn":
        return cls(role=Role.ASSISTANT, content=content)

    @classmethod
    def function(cls, result: FunctionResult) -> "Turn":
        return cls(
            role=Role.FUNCTION,
            content=f"Function {result.call_text()} returned: {result.result}",
            function_result=result,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return a plain-JSON-safe representation for logging or debugging."""
        data: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.function_result is not None:
            data["function_result"] = {
                "name": self.function_result.name,
                "arguments": list(self.function_result.arguments),
                "result": self.function_result.result,
            }
        return data


@dataclass(frozen=True)
class FunctionSpec:
    """
    Declarative description of a locally invocable function.

    Attributes:
        name: Unique function name, case preserved exactly as declared.
        arguments: Ordered argument names.
        description: Free-text description shown to the vendor.
        argument_descriptions: Free-text description per argument name.
        optional: Names of trailing arguments that may be omitted.
    """

    name: str
    arguments: Tuple[str, ...] = ()
    description: str = ""
    argument_descriptions: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)
    optional: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Accept any sequence for arguments but store a tuple so the spec stays immutable.
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(self, "optional", tuple(self.optional))
        trailing = self.arguments[len(self.arguments) - len(self.optional) :]
        if self.optional and set(self.optional) != set(trailing):
            raise ValueError(
                f"Optional arguments of {self.name} must be the trailing ones, got {list(self.optional)}"
            )

    @property
    def arity(self) -> int:
        return len(self.arguments)

    @property
    def min_arity(self) -> int:
        return len(self.arguments) - len(self.optional)

    def accepts(self, count: int) -> bool:
        """True when ``count`` arguments satisfy this spec."""
        return self.min_arity <= count <= self.arity

    def to_json_schema(self) -> Dict[str, Any]:
        """Return the JSON-schema ``parameters`` object; arguments are strings, optional ones not required."""
        properties = {
            arg: {
                "type": "string",
                "description": self.argument_descriptions.get(arg, arg),
            }
            for arg in self.arguments
        }
        return {
            "type": "object",
            "properties": properties,
            "required": [arg for arg in self.arguments if arg not in self.optional],
        }

    def signature(self) -> str:
        args = [f"*{arg}" if arg in self.optional else arg for arg in self.arguments]
        return f"{self.name}({', '.join(args)})"


@dataclass(frozen=True)
class FunctionCallCandidate:
    """Function name plus ordered string arguments decoded from a vendor response."""

    function_name: str
    arguments: Tuple[str, ...]
    source: str = "structured"

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", tuple(self.arguments))

    def __str__(self) -> str:
        return f"{self.function_name}({', '.join(json.dumps(a) for a in self.arguments)})"


@dataclass(frozen=True)
class Citation:
    """Source attribution for part of a generated answer."""

    uri: str = ""
    start_index: Optional[int] = None
    end_index: Optional[int] = None
    license: str = ""
    publication_date: str = ""

    def __str__(self) -> str:
        lines = ["Citation:", f"    Uri: {self.uri}"]
        if self.start_index is not None and self.end_index is not None:
            lines.append(f"    Index range: {self.start_index} - {self.end_index}")
        if self.license:
            lines.append(f"    License: {self.license}")
        if self.publication_date:
            lines.append(f"    Publication Date: {self.publication_date}")
        return "\n".join(lines)


@dataclass(frozen=True)
class SafetyRating:
    """Vendor's harm assessment of a generated answer for one category."""

    category: str
    probability: str
    blocked: bool = False

    def __str__(self) -> str:
        suffix = " (blocked)" if self.blocked else ""
        return f"{self.category}: {self.probability}{suffix}"


@dataclass
class Response:
    """
    Normalized vendor response.

    ``raw_payload`` is the decoded vendor body; it is kept because the
    extractor needs vendor-specific nested structures that the normalized
    fields do not capture.
    """

    text: str
    finish_reason: FinishReason
    usage: "UsageStats"
    raw_payload: Any
    provider: str = ""
    vendor_finish_reason: str = ""
    citations: List[Citation] = field(default_factory=list)
    safety_ratings: List[SafetyRating] = field(default_factory=list)

    @property
    def is_rejection(self) -> bool:
        return self.finish_reason not in (FinishReason.STOP, FinishReason.FUNCTION_CALL)


@dataclass
class RequestPayload:
    """Vendor-specific request ready for the transport."""

    url: str
    headers: Dict[str, str]
    body: Dict[str, Any]

    def describe(self) -> str:
        """Summary without credentials, for debug logging."""
        keys: List[str] = sorted(self.body.keys())
        return f"POST {self.url} body keys={keys}"


__all__ = [
    "Role",
    "FinishReason",
    "Turn",
    "FunctionResult",
    "FunctionSpec",
    "FunctionCallCandidate",
    "Citation",
    "SafetyRating",
    "Response",
    "RequestPayload",
]
