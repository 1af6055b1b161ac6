"""
Detect and decode function-call requests in vendor responses.

Two phases, tried in order:

1. Structured: the adapter's ``function_calls`` finds the vendor's native
   tool-call marker. Its presence is authoritative over any accompanying text.
2. Heuristic: only when functions were offered and no structure is present,
   the response text is scanned for JSON call objects and then for
   call-shaped text such as ``add(2, 3)``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .exceptions import ExtractionAmbiguous, UnknownFunction
from .types import FunctionCallCandidate, FunctionSpec, Response

logger = logging.getLogger(__name__)

_NAME_KEYS = ("name", "function", "tool_name", "tool")
_ARGUMENT_KEYS = ("arguments", "parameters", "args", "params", "input")
_STRING_WRAPPER = re.compile(r"^String\((?P<inner>.*)\)$", re.DOTALL)
_KEYWORD = re.compile(r"^(?P<key>[A-Za-z_][A-Za-z0-9_]*)\s*=\s*(?P<value>.*)$", re.DOTALL)


@dataclass
class Extraction:
    """Outcome of extraction: a candidate, or an ambiguity note, or neither."""

    candidate: Optional[FunctionCallCandidate] = None
    ambiguous: Optional[ExtractionAmbiguous] = None

    @property
    def found(self) -> bool:
        return self.candidate is not None


def _unquote(value: str) -> str:
    value = value.strip()
    wrapped = _STRING_WRAPPER.match(value)
    if wrapped:
        value = wrapped.group("inner").strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        if value[0] == '"':
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass
        return value[1:-1].replace("\\" + value[0], value[0])
    return value


def to_argument_text(value: Any) -> str:
    """Render one vendor-supplied argument value as text."""
    if isinstance(value, str):
        return _unquote(value) if _STRING_WRAPPER.match(value.strip()) else value
    if isinstance(value, bool) or value is None or isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def normalize_arguments(raw: Any, spec: Optional[FunctionSpec] = None) -> Tuple[str, ...]:
    """
    Turn vendor-shaped arguments into an ordered tuple of strings.

    Objects are ordered by the spec's argument names, followed by any keys the
    spec does not declare; JSON strings are decoded first; lists keep their
    order; anything else becomes a single argument.
    """
    if raw is None:
        return ()
    if isinstance(raw, str):
        stripped = raw.strip()
        if not stripped:
            return ()
        try:
            decoded = json.loads(stripped)
        except json.JSONDecodeError:
            return (to_argument_text(raw),)
        if isinstance(decoded, (dict, list)):
            return normalize_arguments(decoded, spec)
        return (to_argument_text(decoded),)
    if isinstance(raw, Mapping):
        declared = list(spec.arguments) if spec else []
        ordered = [raw[name] for name in declared if name in raw]
        ordered.extend(value for key, value in raw.items() if key not in declared)
        return tuple(to_argument_text(value) for value in ordered)
    if isinstance(raw, (list, tuple)):
        return tuple(to_argument_text(value) for value in raw)
    return (to_argument_text(raw),)


def _split_arguments(raw: str) -> List[str]:
    """Split a call's argument text on top-level commas, respecting quotes and brackets."""
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    quote = ""
    escaped = False
    for char in raw:
        if quote:
            current.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = ""
            continue
        if char in "\"'":
            quote = char
        elif char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail or parts:
        parts.append(tail)
    return parts


def _closing_paren(text: str, open_index: int) -> int:
    """Index of the parenthesis closing the one at ``open_index``, or -1."""
    depth = 0
    quote = ""
    escaped = False
    for index in range(open_index, len(text)):
        char = text[index]
        if quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = ""
            continue
        if char in "\"'":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
    return -1


class FunctionCallExtractor:
    """Find at most one function call in a vendor response."""

    def __init__(self, max_payload_chars: int = 8000):
        self.max_payload_chars = max_payload_chars

    def extract(self, response: Response, provider: Any, specs: Sequence[FunctionSpec]) -> Extraction:
        """
        Extract the first function call from ``response``.

        Args:
            response: Normalized response; ``raw_payload`` is handed back to the provider.
            provider: Adapter that produced the response.
            specs: Functions offered on the request.

        Raises:
            UnknownFunction: A structured call names a function that was not offered.
        """
        offered = {spec.name: spec for spec in specs}

        calls = provider.function_calls(response.raw_payload)
        if calls:
            if len(calls) > 1:
                self._extra_calls(provider, calls)
            name, raw_arguments = calls[0]
            spec = offered.get(name)
            if spec is None:
                raise UnknownFunction(name, available=list(offered))
            candidate = FunctionCallCandidate(
                function_name=name,
                arguments=normalize_arguments(raw_arguments, spec),
                source="structured",
            )
            logger.debug("Structured function call: %s", candidate)
            return Extraction(candidate=candidate)

        if not offered or not response.text:
            return Extraction()
        return self._heuristic(response.text, offered)

    def _heuristic(self, text: str, offered: Dict[str, FunctionSpec]) -> Extraction:
        ambiguous: Optional[ExtractionAmbiguous] = None

        for fragment, name, arguments in self._json_calls(text, offered):
            problem = self._validate(offered[name], arguments)
            if problem is None:
                candidate = FunctionCallCandidate(name, arguments, source="json")
                logger.debug("Function call found in JSON text: %s", candidate)
                return Extraction(candidate=candidate)
            ambiguous = ambiguous or ExtractionAmbiguous(fragment, problem)

        for fragment, name, arguments, problem in self._text_calls(text, offered):
            problem = problem or self._validate(offered[name], arguments)
            if problem is None:
                candidate = FunctionCallCandidate(name, arguments, source="text")
                logger.debug("Function call found in text: %s", candidate)
                return Extraction(candidate=candidate)
            ambiguous = ambiguous or ExtractionAmbiguous(fragment, problem)

        if ambiguous is not None:
            logger.warning("%s", ambiguous)
        return Extraction(ambiguous=ambiguous)

    @staticmethod
    def _extra_calls(provider: Any, calls: Sequence[Tuple[str, Any]]) -> None:
        if getattr(provider, "single_function_call", False):
            logger.warning(
                "%s returned %d function calls but takes one per turn; only '%s' is used",
                getattr(provider, "name", "provider"),
                len(calls),
                calls[0][0],
            )
        else:
            logger.info("Response carries %d function calls; only '%s' is used", len(calls), calls[0][0])

    @staticmethod
    def _validate(spec: FunctionSpec, arguments: Tuple[str, ...]) -> Optional[str]:
        if spec.accepts(len(arguments)):
            return None
        wanted = str(spec.arity) if spec.min_arity == spec.arity else f"{spec.min_arity} to {spec.arity}"
        return f"has {len(arguments)} argument(s) where {spec.signature()} expects {wanted}"

    def _json_calls(
        self, text: str, offered: Dict[str, FunctionSpec]
    ) -> Iterator[Tuple[str, str, Tuple[str, ...]]]:
        for block in self._find_balanced_json(text):
            if self.max_payload_chars and len(block) > self.max_payload_chars:
                continue
            data = self._load_json(block)
            if not data:
                continue
            name, raw_arguments = self._call_fields(data)
            if name in offered:
                yield block, name, normalize_arguments(raw_arguments, offered[name])

    @staticmethod
    def _call_fields(data: Dict[str, Any]) -> Tuple[Optional[str], Any]:
        for key in _NAME_KEYS:
            value = data.get(key)
            if isinstance(value, dict):
                # {"function": {"name": ..., "arguments": ...}}
                return FunctionCallExtractor._call_fields(value)
            if isinstance(value, str) and value:
                raw_arguments = next(
                    (data[arg_key] for arg_key in _ARGUMENT_KEYS if arg_key in data), None
                )
                return value, raw_arguments
        return None, None

    def _text_calls(
        self, text: str, offered: Dict[str, FunctionSpec]
    ) -> Iterator[Tuple[str, str, Tuple[str, ...], Optional[str]]]:
        names = sorted(offered, key=len, reverse=True)
        pattern = re.compile(r"(?<![\w.])(" + "|".join(re.escape(name) for name in names) + r")\s*\(")
        for match in pattern.finditer(text):
            open_index = match.end() - 1
            close_index = _closing_paren(text, open_index)
            if close_index < 0:
                yield match.group(0), match.group(1), (), "has no closing parenthesis"
                continue
            fragment = text[match.start() : close_index + 1]
            spec = offered[match.group(1)]
            arguments, problem = self._call_arguments(text[open_index + 1 : close_index], spec)
            yield fragment, spec.name, arguments, problem

    @staticmethod
    def _call_arguments(raw: str, spec: FunctionSpec) -> Tuple[Tuple[str, ...], Optional[str]]:
        positional: List[str] = []
        keywords: Dict[str, str] = {}
        for part in _split_arguments(raw):
            keyword = _KEYWORD.match(part)
            if keyword and not part.startswith(("'", '"')):
                key = keyword.group("key")
                if key not in spec.arguments:
                    return (), f"uses unknown argument '{key}'"
                keywords[key] = _unquote(keyword.group("value"))
            elif keywords:
                return (), "has a positional argument after a keyword argument"
            else:
                positional.append(_unquote(part))

        if not keywords:
            return tuple(positional), None

        values = list(positional)
        for name in spec.arguments[len(positional) :]:
            if name not in keywords:
                break
            values.append(keywords[name])
        absent = spec.arguments[len(values) :]
        mandatory = absent[: max(spec.min_arity - len(values), 0)]
        missing = [name for name in mandatory if name not in keywords]
        if missing:
            return (), f"is missing argument(s) {', '.join(missing)}"
        skipped = [name for name in absent if name in keywords]
        if skipped:
            return (), f"gives {', '.join(skipped)} but leaves out {absent[0]}"
        return tuple(values), None

    @staticmethod
    def _load_json(candidate: str) -> Optional[Dict[str, Any]]:
        """Attempt JSON parsing with lenient fallbacks."""
        normalized = candidate.strip("` \n:")
        attempts = [
            normalized,
            normalized.replace("'", '"'),
            normalized.replace("\n", "\\n"),
        ]
        for attempt in attempts:
            try:
                data = json.loads(attempt)
            except json.JSONDecodeError:
                continue
            return data if isinstance(data, dict) else None
        return None

    @staticmethod
    def _find_balanced_json(text: str) -> List[str]:
        """Collect balanced JSON-like substrings from text, outermost first."""
        candidates: List[str] = []
        starts = [m.start() for m in re.finditer(r"\{", text)]
        for start in starts:
            depth = 0
            for idx in range(start, len(text)):
                char = text[idx]
                if char == "{":
                    depth += 1
                elif char == "}":
                    depth -= 1
                    if depth == 0:
                        candidates.append(text[start : idx + 1])
                        break
        return candidates


__all__ = ["FunctionCallExtractor", "Extraction", "normalize_arguments", "to_argument_text"]
