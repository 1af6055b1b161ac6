"""
Lightweight .env loader for local development credentials.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable


def load_env_if_present(candidate_paths: Iterable[Path]) -> None:
    """Load KEY=value pairs from the first .env-style file that exists."""
    for env_path in candidate_paths:
        if not env_path.exists() or not env_path.is_file():
            continue
        try:
            lines = env_path.read_text().splitlines()
        except OSError:
            # Unreadable file; explicit environment variables still apply.
            continue
        for line in lines:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or "=" not in stripped:
                continue
            if stripped.startswith("export "):
                stripped = stripped[len("export ") :]
            key, value = stripped.split("=", 1)
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and key not in os.environ:
                os.environ[key] = value
        break


def load_default_env() -> None:
    """Load from common locations: cwd/.env and project root .env."""
    cwd = Path.cwd()
    default_candidates = [
        cwd / ".env",
        Path(__file__).resolve().parents[2] / ".env",
    ]
    load_env_if_present(default_candidates)


__all__ = ["load_default_env", "load_env_if_present"]
