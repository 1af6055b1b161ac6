"""
Pytest configuration for llmclient tests.

This file configures pytest with custom markers and command-line options,
and provides an in-memory transport so no test touches the network.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from llmclient.config import ProviderConfig


class FakeTransport:
    """Transport that records requests and replays scripted (status, body) replies."""

    def __init__(self, replies: Optional[List[Any]] = None):
        self.replies: List[Any] = list(replies or [])
        self.requests: List[Dict[str, Any]] = []
        self.timeout = 120.0

    def queue(self, body: Any, status: int = 200) -> None:
        self.replies.append((status, body))

    def post(self, url: str, headers: Dict[str, str], json_body: Dict[str, Any]) -> Tuple[int, Any]:
        self.requests.append({"url": url, "headers": headers, "body": json_body})
        if not self.replies:
            raise AssertionError(f"Unexpected request to {url}")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def last_body(self) -> Dict[str, Any]:
        return self.requests[-1]["body"]


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run end-to-end tests with real API calls",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "e2e: mark test as end-to-end (requires real API keys, use --run-e2e to run)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip e2e tests unless --run-e2e is passed."""
    if config.getoption("--run-e2e"):
        return

    skip_e2e = pytest.mark.skip(reason="Need --run-e2e option to run end-to-end tests")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_config() -> Callable[..., ProviderConfig]:
    """Factory for ProviderConfig values that never read the environment."""

    def _make(vendor: str = "gpt", **overrides: Any) -> ProviderConfig:
        values: Dict[str, Any] = {
            "vendor": vendor,
            "api_key": f"test-{vendor}-key",
            "model": f"{vendor}-test-model",
            "url": f"https://{vendor}.example.com/v1/chat",
        }
        if vendor == "gemini":
            values["url"] = "https://gemini.example.com/v1beta/models/{model}:generateContent"
        if vendor == "claude":
            values["version"] = "2023-06-01"
        values.update(overrides)
        return ProviderConfig(**values)

    return _make
