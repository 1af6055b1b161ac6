"""
Vendor-agnostic dialogue loop with single-step function calling.

One exchange sends the dialogue plus a new user turn to the provider. If the
reply asks for a registered function, the function runs locally, its result
is appended as a FUNCTION turn, and exactly one follow-up call produces the
answer. Turns reach the dialogue only once the exchange has a recordable
outcome.
"""

from __future__ import annotations

import asyncio
import copy
import functools
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from .dialogue import Dialogue
from .exceptions import (
    ArityMismatch,
    ExtractionAmbiguous,
    FunctionExecutionError,
    LlmClientError,
    MalformedResponse,
    TransportError,
    UnknownFunction,
    VendorRejection,
    describe,
)
from .extractor import FunctionCallExtractor
from .functions import FunctionImpl, FunctionRegistry
from .providers.base import HttpProvider, Provider
from .types import (
    Citation,
    FinishReason,
    FunctionCallCandidate,
    FunctionResult,
    FunctionSpec,
    Response,
    SafetyRating,
    Turn,
)
from .usage import UsageStats

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorConfig:
    """
    Configuration options for the dialogue loop.

    Attributes:
        system_prompt: Persona sent ahead of any SYSTEM turns on every request.
            Lives here rather than in the dialogue, so it survives ``reset()``.
            Default: None.
        model: Model override for every request. None = the provider's model.
        temperature: Sampling temperature override. None = the provider's setting.
        max_tokens: Generation limit override. None = the provider's setting.
        request_timeout: Transport timeout override in seconds. None = the provider's setting.
        offer_functions: Offer registered functions on the first request of an
            exchange. Default: True.
        verbose: Print token usage and function calls as they happen. Default: False.
    """

    system_prompt: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    request_timeout: Optional[float] = None
    offer_functions: bool = True
    verbose: bool = False


class ExchangeState(str, Enum):
    """States an exchange moves through."""

    AWAITING_USER_INPUT = "awaiting_user_input"
    REQUEST_SENT = "request_sent"
    FUNCTION_CALL_DETECTED = "function_call_detected"
    ANSWER_READY = "answer_ready"
    PROVIDER_ERROR = "provider_error"


@dataclass
class ExchangeResult:
    """
    Outcome of one ``send_message`` call.

    Unpacks as ``(text, usage)``. On failure ``text`` holds the labelled
    failure reason and ``error`` the exception.
    """

    text: str
    usage: UsageStats
    finish_reason: FinishReason = FinishReason.STOP
    error: Optional[LlmClientError] = None
    function_call: Optional[FunctionCallCandidate] = None
    function_result: Optional[FunctionResult] = None
    ambiguous: Optional[ExtractionAmbiguous] = None
    citations: List[Citation] = field(default_factory=list)
    safety_ratings: List[SafetyRating] = field(default_factory=list)
    trace: List[ExchangeState] = field(default_factory=list)
    elapsed: float = 0.0
    calls: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def __iter__(self) -> Iterator[object]:
        yield self.text
        yield self.usage


class _Exchange:
    """Mutable bookkeeping for one exchange before it is committed."""

    def __init__(self, dialogue: Dialogue, text: str):
        self.dialogue = dialogue
        self.pending: List[Turn] = [Turn.user(text)]
        self.usages: List[Tuple[UsageStats, Optional[str]]] = []
        self.trace: List[ExchangeState] = [ExchangeState.AWAITING_USER_INPUT]
        self.started = time.perf_counter()
        self.candidate: Optional[FunctionCallCandidate] = None
        self.function_result: Optional[FunctionResult] = None
        self.ambiguous: Optional[ExtractionAmbiguous] = None
        self.follow_up = False
        self.citations: List[Citation] = []
        self.safety_ratings: List[SafetyRating] = []

    def turns(self) -> List[Turn]:
        return self.dialogue.history() + self.pending

    def note(self, response: Response) -> None:
        """Keep the annotations of the latest response that carries any."""
        if response.citations:
            self.citations = list(response.citations)
        if response.safety_ratings:
            self.safety_ratings = list(response.safety_ratings)

    def usage(self) -> UsageStats:
        total = UsageStats()
        for stats, _ in self.usages:
            total = total + stats
        return total

    def commit(self, answer: Optional[str] = None) -> None:
        self.dialogue.extend(self.pending)
        if answer is not None:
            self.dialogue.append(Turn.assistant(answer))
        for stats, function_name in self.usages:
            self.dialogue.record_usage(stats, function_name=function_name)

    def result(
        self,
        text: str,
        finish_reason: FinishReason,
        error: Optional[LlmClientError] = None,
    ) -> ExchangeResult:
        self.trace.append(ExchangeState.AWAITING_USER_INPUT)
        return ExchangeResult(
            text=text,
            usage=self.usage(),
            finish_reason=finish_reason,
            error=error,
            function_call=self.candidate,
            function_result=self.function_result,
            ambiguous=self.ambiguous,
            citations=self.citations,
            safety_ratings=self.safety_ratings,
            trace=self.trace,
            elapsed=time.perf_counter() - self.started,
            calls=len(self.usages),
        )


class Orchestrator:
    """
    Drives dialogue exchanges against one provider.

    Example:
        >>> provider = build_provider("gemini")
        >>> bot = Orchestrator(provider, config=OrchestratorConfig(system_prompt="Be brief."))
        >>> bot.register_function(FunctionSpec("add", ("a", "b"), "Add two numbers"), add)
        >>> dialogue = bot.new_dialogue()
        >>> answer, usage = bot.send_message(dialogue, "What is 2 + 3?")
    """

    def __init__(
        self,
        provider: Provider,
        registry: Optional[FunctionRegistry] = None,
        extractor: Optional[FunctionCallExtractor] = None,
        config: Optional[OrchestratorConfig] = None,
    ):
        """
        Args:
            provider: Adapter for the vendor to talk to.
            registry: Functions the vendor may call. Defaults to an empty registry.
            extractor: Function-call extractor. Defaults to FunctionCallExtractor().
            config: Loop options. Defaults to OrchestratorConfig().
        """
        self.provider = provider
        self.registry = registry if registry is not None else FunctionRegistry()
        self.extractor = extractor or FunctionCallExtractor()
        self.config = config or OrchestratorConfig()
        self._apply_overrides()

    def _apply_overrides(self) -> None:
        """Point this orchestrator at a copy of the provider carrying the overrides."""
        if not isinstance(self.provider, HttpProvider):
            return
        overrides = {
            key: value
            for key, value in (
                ("temperature", self.config.temperature),
                ("max_tokens", self.config.max_tokens),
                ("timeout", self.config.request_timeout),
            )
            if value is not None
        }
        if not overrides:
            return
        # The caller's provider may be shared with other orchestrators.
        provider = copy.copy(self.provider)
        provider.config = replace(provider.config, **overrides)
        if "timeout" in overrides and hasattr(provider.transport, "timeout"):
            provider.transport = copy.copy(provider.transport)
            provider.transport.timeout = overrides["timeout"]
        self.provider = provider

    # Dialogue management

    def new_dialogue(self) -> Dialogue:
        return Dialogue()

    def reset(self, dialogue: Dialogue) -> None:
        dialogue.reset()

    def history(self, dialogue: Dialogue) -> List[Turn]:
        return dialogue.history()

    def register_function(self, spec: FunctionSpec, implementation: FunctionImpl) -> None:
        """Register a function the vendor may call. Raises DuplicateFunction."""
        self.registry.register(spec, implementation)

    # Exchange

    def _offered(self, exchange: _Exchange) -> List[FunctionSpec]:
        if exchange.follow_up or not self.config.offer_functions:
            return []
        return self.registry.specs()

    def _request(self, exchange: _Exchange) -> functools.partial:
        exchange.trace.append(ExchangeState.REQUEST_SENT)
        return functools.partial(
            self.provider.complete,
            exchange.turns(),
            system_prompt=self.config.system_prompt or "",
            functions=self._offered(exchange) or None,
            model=self.config.model,
        )

    def _provider_error(self, exchange: _Exchange, error: LlmClientError) -> ExchangeResult:
        logger.warning("Provider call failed: %s", describe(error))
        if self.config.verbose:
            print(f"[orchestrator] provider error: {describe(error)}")
        exchange.trace.append(ExchangeState.PROVIDER_ERROR)
        return exchange.result(describe(error), FinishReason.ERROR, error=error)

    def _handle_response(self, exchange: _Exchange, response: Response) -> Optional[ExchangeResult]:
        """
        Process one provider response.

        Returns the final result, or None when a follow-up call is needed.
        """
        if self.config.verbose:
            print(
                f"[orchestrator] tokens: {response.usage.total_tokens:,} "
                f"(prompt: {response.usage.prompt_tokens:,}, "
                f"completion: {response.usage.completion_tokens:,})"
            )
        exchange.note(response)

        if response.is_rejection:
            exchange.usages.append((response.usage, None))
            rejection = VendorRejection(
                self.provider.name,
                response.vendor_finish_reason or response.finish_reason.value,
                response.text,
            )
            logger.warning("%s", describe(rejection))
            exchange.trace.append(ExchangeState.PROVIDER_ERROR)
            exchange.commit()
            return exchange.result(describe(rejection), response.finish_reason, error=rejection)

        if exchange.follow_up:
            exchange.usages.append((response.usage, None))
            return self._answer(exchange, response)

        try:
            extraction = self.extractor.extract(response, self.provider, self._offered(exchange))
        except UnknownFunction as exc:
            exchange.usages.append((response.usage, None))
            exchange.trace.append(ExchangeState.FUNCTION_CALL_DETECTED)
            return self._function_failure(exchange, exc)

        exchange.ambiguous = extraction.ambiguous
        if extraction.candidate is None:
            exchange.usages.append((response.usage, None))
            return self._answer(exchange, response)

        candidate = extraction.candidate
        exchange.candidate = candidate
        exchange.usages.append((response.usage, candidate.function_name))
        exchange.trace.append(ExchangeState.FUNCTION_CALL_DETECTED)
        if self.config.verbose:
            print(f"[orchestrator] function call: {candidate}")

        try:
            result = self.registry.invoke(candidate.function_name, candidate.arguments)
        except (UnknownFunction, ArityMismatch, FunctionExecutionError) as exc:
            return self._function_failure(exchange, exc)

        exchange.function_result = FunctionResult(
            name=candidate.function_name, arguments=candidate.arguments, result=result
        )
        exchange.pending.append(Turn.function(exchange.function_result))
        exchange.follow_up = True
        return None

    def _function_failure(self, exchange: _Exchange, error: LlmClientError) -> ExchangeResult:
        logger.warning("Function call not executed: %s", describe(error))
        exchange.commit()
        return exchange.result(describe(error), FinishReason.FUNCTION_CALL, error=error)

    def _answer(self, exchange: _Exchange, response: Response) -> ExchangeResult:
        text = response.text
        if not text and exchange.function_result is not None:
            text = exchange.function_result.result
        exchange.trace.append(ExchangeState.ANSWER_READY)
        exchange.commit(answer=text)
        return exchange.result(text, response.finish_reason)

    def send_message(self, dialogue: Dialogue, text: str) -> ExchangeResult:
        """
        Run one exchange: user text in, answer out.

        Never raises for exchange failures; they are reported in
        ``ExchangeResult.error`` and the dialogue is updated as described in
        the module docstring.

        Args:
            dialogue: Conversation to continue.
            text: User input, sent as a single USER turn.

        Returns:
            ExchangeResult, which unpacks as ``(text, usage)``.
        """
        exchange = _Exchange(dialogue, text)
        while True:
            call = self._request(exchange)
            try:
                response = call()
            except (TransportError, MalformedResponse) as exc:
                return self._provider_error(exchange, exc)
            result = self._handle_response(exchange, response)
            if result is not None:
                return result

    async def asend_message(self, dialogue: Dialogue, text: str) -> ExchangeResult:
        """
        Async version of send_message().

        The provider call runs in the loop's default executor; everything else
        happens on the event loop. Independent dialogues may run concurrently.
        """
        loop = asyncio.get_running_loop()
        exchange = _Exchange(dialogue, text)
        while True:
            call = self._request(exchange)
            try:
                response = await loop.run_in_executor(None, call)
            except (TransportError, MalformedResponse) as exc:
                return self._provider_error(exchange, exc)
            result = self._handle_response(exchange, response)
            if result is not None:
                return result

    def __repr__(self) -> str:
        return f"Orchestrator(provider={self.provider!r}, functions={self.registry.names()})"


__all__ = ["Orchestrator", "OrchestratorConfig", "ExchangeResult", "ExchangeState"]
