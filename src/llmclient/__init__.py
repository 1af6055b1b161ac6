"""Public exports for the llmclient package."""

from .config import ProviderConfig, resolve_vendor
from .dialogue import Dialogue
from .exceptions import (
    ArityMismatch,
    DuplicateFunction,
    ExtractionAmbiguous,
    FunctionDeclarationError,
    FunctionExecutionError,
    LlmClientError,
    MalformedResponse,
    ProviderConfigurationError,
    TransportError,
    UnknownFunction,
    VendorRejection,
)
from .extractor import Extraction, FunctionCallExtractor
from .functions import FunctionRegistry
from .loader import load_declarations, parse_declarations
from .orchestrator import ExchangeResult, ExchangeState, Orchestrator, OrchestratorConfig
from .providers import (
    AnthropicProvider,
    DeepSeekProvider,
    GeminiProvider,
    GroqProvider,
    MistralProvider,
    OpenAIProvider,
    Provider,
    build_provider,
)
from .transport import RequestsTransport, Transport
from .types import (
    FinishReason,
    FunctionCallCandidate,
    FunctionResult,
    FunctionSpec,
    RequestPayload,
    Response,
    Role,
    Turn,
)
from .usage import DialogueUsage, UsageStats

__version__ = "0.1.0"

__all__ = [
    "Orchestrator",
    "OrchestratorConfig",
    "ExchangeResult",
    "ExchangeState",
    "Dialogue",
    "Turn",
    "Role",
    "FinishReason",
    "FunctionSpec",
    "FunctionResult",
    "FunctionCallCandidate",
    "Response",
    "RequestPayload",
    "FunctionRegistry",
    "FunctionCallExtractor",
    "Extraction",
    "parse_declarations",
    "load_declarations",
    "ProviderConfig",
    "resolve_vendor",
    "Transport",
    "RequestsTransport",
    # Providers
    "Provider",
    "GeminiProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "MistralProvider",
    "GroqProvider",
    "DeepSeekProvider",
    "build_provider",
    # Exceptions
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
    # Usage tracking
    "UsageStats",
    "DialogueUsage",
]
