"""
Registry of locally invocable functions offered to vendors for function calling.
"""

from __future__ import annotations

import inspect
import logging
import threading
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .exceptions import ArityMismatch, DuplicateFunction, FunctionExecutionError, UnknownFunction
from .types import FunctionSpec

logger = logging.getLogger(__name__)

FunctionImpl = Callable[..., str]


def _infer_arguments(func: Callable[..., object]) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """
    Positional parameter names of a callable, skipping self/cls and *args/**kwargs.

    Parameters with defaults are also returned as the optional names.
    """
    names = []
    optional = []
    for name, param in inspect.signature(func).parameters.items():
        if name in ("self", "cls"):
            continue
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD, param.KEYWORD_ONLY):
            continue
        names.append(name)
        if param.default is not param.empty:
            optional.append(name)
    return tuple(names), tuple(optional)


class FunctionRegistry:
    """
    Central registry mapping function names to their spec and implementation.

    The registry is built once at startup and then only read, so it can be
    shared by dialogues running concurrently. Arguments and results are plain
    text; converting "2" into a number is the callable's business.

    Example:
        >>> registry = FunctionRegistry()
        >>> @registry.function(description="Add two numbers")
        ... def add(a, b):
        ...     return str(int(a) + int(b))
        >>> registry.invoke("add", ["2", "3"])
        '5'
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[FunctionSpec, FunctionImpl]] = {}
        self._lock = threading.Lock()

    def register(self, spec: FunctionSpec, implementation: FunctionImpl) -> None:
        """
        Register a function under ``spec.name``.

        Args:
            spec: Declarative description of the function.
            implementation: Callable taking ``spec.min_arity`` to ``spec.arity`` string arguments.

        Raises:
            DuplicateFunction: If the name is already registered.
        """
        with self._lock:
            if spec.name in self._entries:
                raise DuplicateFunction(spec.name)
            self._entries[spec.name] = (spec, implementation)
        logger.debug("Registered function %s", spec.signature())

    def get(self, name: str) -> Optional[FunctionSpec]:
        """Get a function spec by exact name."""
        entry = self._entries.get(name)
        return entry[0] if entry else None

    def specs(self) -> List[FunctionSpec]:
        """Return all registered specs in registration order."""
        return [spec for spec, _ in self._entries.values()]

    def names(self) -> List[str]:
        return list(self._entries.keys())

    def invoke(self, name: str, arguments: Sequence[str]) -> str:
        """
        Call a registered function with ordered string arguments.

        Args:
            name: Function name, matched case-sensitively.
            arguments: Ordered string arguments.

        Returns:
            The callable's result, unmodified when it is already a string.

        Raises:
            UnknownFunction: If no function with that name is registered.
            ArityMismatch: If the argument count is outside what the spec accepts.
            FunctionExecutionError: If the callable itself raises.
        """
        entry = self._entries.get(name)
        if entry is None:
            raise UnknownFunction(name, available=self.names())

        spec, implementation = entry
        if not spec.accepts(len(arguments)):
            raise ArityMismatch(
                name, expected=spec.arity, got=len(arguments), minimum=spec.min_arity
            )

        logger.info("Invoking %s", spec.name)
        try:
            result = implementation(*arguments)
        except Exception as exc:
            raise FunctionExecutionError(name, exc, arguments) from exc

        return result if isinstance(result, str) else str(result)

    def function(
        self,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        arguments: Optional[Mapping[str, str]] = None,
    ) -> Callable[[FunctionImpl], FunctionImpl]:
        """
        Decorator to register a plain function.

        Args:
            name: Optional custom name (defaults to the function name).
            description: Optional description (defaults to the docstring).
            arguments: Optional mapping of argument name to description.

        Returns:
            Decorator that registers the function and returns it unchanged.
        """

        def decorator(func: FunctionImpl) -> FunctionImpl:
            fn_name = name or func.__name__
            arg_names, optional = _infer_arguments(func)
            spec = FunctionSpec(
                name=fn_name,
                arguments=arg_names,
                optional=optional,
                description=description or inspect.getdoc(func) or f"Function {fn_name}",
                argument_descriptions=dict(arguments or {}),
            )
            self.register(spec, func)
            return func

        return decorator

    @classmethod
    def from_declarations(
        cls, text: str, implementations: Mapping[str, FunctionImpl]
    ) -> "FunctionRegistry":
        """
        Build a registry from a declaration block and a name → callable mapping.

        Raises:
            FunctionDeclarationError: If the block cannot be parsed.
            UnknownFunction: If a declared function has no implementation.
        """
        from .loader import parse_declarations

        registry = cls()
        for spec in parse_declarations(text):
            implementation = implementations.get(spec.name)
            if implementation is None:
                raise UnknownFunction(spec.name, available=list(implementations.keys()))
            registry.register(spec, implementation)
        return registry

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FunctionRegistry({', '.join(s.signature() for s in self.specs())})"


__all__ = ["FunctionRegistry", "FunctionImpl"]
