"""
Tests for env.py (load_env_if_present, load_default_env).

Tests cover:
- Loading KEY=value pairs, comments and blank lines
- `export` prefixes and quoted values
- Never overriding variables already set
- Missing files and directories
- Stopping after the first file found
- load_default_env() reading the working directory
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import pytest

from llmclient.env import load_default_env, load_env_if_present

KEYS = ["LLMC_TEST_A", "LLMC_TEST_B", "LLMC_TEST_C", "LLMC_EXISTING"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in KEYS:
        monkeypatch.delenv(key, raising=False)
    yield
    for key in KEYS:
        os.environ.pop(key, None)


class TestLoadEnvIfPresent:
    """Tests for load_env_if_present()."""

    def test_loads_pairs_and_skips_noise(self, tmp_path: Path) -> None:
        env = tmp_path / ".env"
        env.write_text("# comment\n\nLLMC_TEST_A=hello\nnot a pair\nLLMC_TEST_B=a=b\n")
        load_env_if_present([env])

        assert os.environ["LLMC_TEST_A"] == "hello"
        assert os.environ["LLMC_TEST_B"] == "a=b"

    def test_export_prefix_and_quotes(self, tmp_path: Path) -> None:
        env = tmp_path / ".env"
        env.write_text("export LLMC_TEST_A=\"quoted value\"\nLLMC_TEST_B='single'\n")
        load_env_if_present([env])

        assert os.environ["LLMC_TEST_A"] == "quoted value"
        assert os.environ["LLMC_TEST_B"] == "single"

    def test_existing_variable_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLMC_EXISTING", "explicit")
        env = tmp_path / ".env"
        env.write_text("LLMC_EXISTING=from_file\n")
        load_env_if_present([env])

        assert os.environ["LLMC_EXISTING"] == "explicit"

    def test_skips_missing_and_directories(self, tmp_path: Path) -> None:
        env = tmp_path / "real.env"
        env.write_text("LLMC_TEST_A=found\n")
        load_env_if_present([tmp_path / "missing.env", tmp_path, env])

        assert os.environ["LLMC_TEST_A"] == "found"

    def test_stops_after_first_file(self, tmp_path: Path) -> None:
        first = tmp_path / "first.env"
        first.write_text("LLMC_TEST_A=first\n")
        second = tmp_path / "second.env"
        second.write_text("LLMC_TEST_A=second\nLLMC_TEST_C=second\n")
        load_env_if_present([first, second])

        assert os.environ["LLMC_TEST_A"] == "first"
        assert "LLMC_TEST_C" not in os.environ


class TestLoadDefaultEnv:
    """Tests for load_default_env()."""

    def test_loads_from_cwd(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("LLMC_TEST_C=from_cwd\n")

        load_default_env()

        assert os.environ["LLMC_TEST_C"] == "from_cwd"
