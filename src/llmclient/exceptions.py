"""
Custom exceptions with clearly labelled messages and suggestions.

Every exception carries:
- A short label naming the failure class
- The detail of what went wrong
- Relevant context as attributes (function name, status code, etc.)
- An optional suggestion for how to fix it
"""

from __future__ import annotations

from typing import Any, Optional, Sequence


class LlmClientError(Exception):
    """Base exception for all llmclient errors."""

    label = "Error"

    def __init__(self, detail: str, suggestion: str = ""):
        self.detail = detail
        self.suggestion = suggestion

        message = f"{self.label}: {detail}"
        if suggestion:
            message += f"\n💡 Suggestion: {suggestion}"

        super().__init__(message)


class TransportError(LlmClientError):
    """Raised when the network call fails or the vendor answers with an HTTP error."""

    label = "Transport Error"

    def __init__(self, detail: str, status: Optional[int] = None, provider: str = ""):
        self.status = status
        self.provider = provider
        prefix = f"[{provider}] " if provider else ""
        if status is not None:
            prefix += f"HTTP {status}: "
        super().__init__(f"{prefix}{detail}")


class MalformedResponse(LlmClientError):
    """Raised when a vendor body cannot be normalized into a Response."""

    label = "Malformed Response"

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        super().__init__(f"[{provider}] {detail}")


class VendorRejection(LlmClientError):
    """A 200 response whose finish reason is a refusal, safety block or early stop."""

    label = "Vendor Rejection"

    def __init__(self, provider: str, finish_reason: str, text: str = ""):
        self.provider = provider
        self.finish_reason = finish_reason
        self.text = text
        super().__init__(
            f"[{provider}] generation stopped with finish reason '{finish_reason}'",
            suggestion="Rephrase the request or raise max_tokens if the answer was cut short",
        )


class UnknownFunction(LlmClientError):
    """Raised when a function name is not present in the registry."""

    label = "Unknown Function"

    def __init__(self, name: str, available: Sequence[str] = ()):
        self.name = name
        self.available = list(available)
        suggestion = ""
        if self.available:
            suggestion = f"Available functions: {', '.join(self.available)}"
        super().__init__(f"'{name}' is not registered", suggestion=suggestion)


class ArityMismatch(LlmClientError):
    """Raised when a function is invoked with the wrong number of arguments."""

    label = "Arity Mismatch"

    def __init__(self, name: str, expected: int, got: int, minimum: Optional[int] = None):
        self.name = name
        self.expected = expected
        self.got = got
        self.minimum = expected if minimum is None else minimum
        wanted = str(expected) if self.minimum == expected else f"{self.minimum} to {expected}"
        super().__init__(f"'{name}' expects {wanted} argument(s), got {got}")


class DuplicateFunction(LlmClientError):
    """Raised when registering a function name that is already present."""

    label = "Duplicate Function"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"'{name}' is already registered")


class FunctionExecutionError(LlmClientError):
    """Raised when a registered callable fails."""

    label = "Function Execution Failed"

    def __init__(self, name: str, error: Exception, arguments: Sequence[str]):
        self.name = name
        self.error = error
        self.arguments = list(arguments)
        super().__init__(f"'{name}' raised {type(error).__name__}: {error}")


class ExtractionAmbiguous(LlmClientError):
    """Call-shaped text was found but did not validate against any offered function."""

    label = "Ambiguous Function Call"

    def __init__(self, fragment: str, reason: str):
        self.fragment = fragment
        self.reason = reason
        super().__init__(f"'{fragment}' looks like a function call but {reason}")


class FunctionDeclarationError(LlmClientError):
    """Raised when a textual function declaration cannot be parsed."""

    label = "Invalid Function Declaration"

    def __init__(self, declaration: str, issue: str):
        self.declaration = declaration
        self.issue = issue
        super().__init__(
            issue,
            suggestion="Use '// description', '// arg: description' lines then 'fn name(arg, ...)'",
        )


class ProviderConfigurationError(LlmClientError):
    """Raised when provider configuration is missing or incorrect."""

    label = "Provider Configuration Error"

    def __init__(self, provider_name: str, missing_config: str, env_var: str = ""):
        self.provider_name = provider_name
        self.missing_config = missing_config
        self.env_var = env_var
        suggestion = f"export {env_var}='...' or pass it in ProviderConfig" if env_var else ""
        super().__init__(f"[{provider_name}] missing {missing_config}", suggestion=suggestion)


def describe(error: Any) -> str:
    """First line of an error message, suitable for showing as an answer."""
    return str(error).splitlines()[0] if str(error) else type(error).__name__


__all__ = [
    "LlmClientError",
    "TransportError",
    "MalformedResponse",
    "VendorRejection",
    "UnknownFunction",
    "ArityMismatch",
    "DuplicateFunction",
    "FunctionExecutionError",
    "ExtractionAmbiguous",
    "FunctionDeclarationError",
    "ProviderConfigurationError",
    "describe",
]
