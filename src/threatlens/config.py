# SPDX-License-Identifier: MIT
"""Process configuration — read once at startup and passed around explicitly.

Environment variables:
    THREATLENS_API_KEY              — secret callers present to unlock overrides/advisory
    THREATLENS_PACK                 — default policy pack id
    THREATLENS_MAX_DIFF_BYTES       — reject diffs larger than this (default: 800000)
    THREATLENS_LARGE_CHANGE_LINES   — auto-escalate above this many added lines (default: 250)
    OPENROUTER_API_KEY              — advisory model credential (unset = advisory disabled)
    OPENROUTER_MODEL                — advisory model id (default: openai/gpt-5-mini)
    OPENROUTER_BASE_URL             — OpenAI-compatible endpoint
    OPENROUTER_PROVIDER             — pin a single upstream provider
    OPENROUTER_REFERER / OPENROUTER_TITLE — attribution headers
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_ADVISORY_MODEL = "openai/gpt-5-mini"
DEFAULT_ADVISORY_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MAX_DIFF_BYTES = 800_000
DEFAULT_LARGE_CHANGE_THRESHOLD = 250


def _env_str(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name, "").strip()
    return value or None


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        msg = f"Invalid {name}={raw!r}: expected a positive integer"
        raise ValueError(msg) from None
    if value <= 0:
        msg = f"Invalid {name}={raw!r}: expected a positive integer"
        raise ValueError(msg)
    return value


@dataclass(frozen=True)
class Settings:
    """Explicit configuration for the scan service and advisory collaborator."""

    api_key: str | None = None
    default_pack_id: str | None = None
    max_diff_bytes: int = DEFAULT_MAX_DIFF_BYTES
    large_change_threshold: int = DEFAULT_LARGE_CHANGE_THRESHOLD
    advisory_api_key: str | None = None
    advisory_model: str = DEFAULT_ADVISORY_MODEL
    advisory_base_url: str = DEFAULT_ADVISORY_BASE_URL
    advisory_provider: str | None = None
    advisory_referer: str = "https://threatlens.local"
    advisory_title: str = "ThreatLens"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Raises:
            ValueError: If a numeric variable is not a positive integer.
        """
        env = os.environ if environ is None else environ
        return cls(
            api_key=_env_str(env, "THREATLENS_API_KEY"),
            default_pack_id=_env_str(env, "THREATLENS_PACK"),
            max_diff_bytes=_env_int(env, "THREATLENS_MAX_DIFF_BYTES", DEFAULT_MAX_DIFF_BYTES),
            large_change_threshold=_env_int(
                env, "THREATLENS_LARGE_CHANGE_LINES", DEFAULT_LARGE_CHANGE_THRESHOLD
            ),
            advisory_api_key=_env_str(env, "OPENROUTER_API_KEY"),
            advisory_model=_env_str(env, "OPENROUTER_MODEL") or DEFAULT_ADVISORY_MODEL,
            advisory_base_url=_env_str(env, "OPENROUTER_BASE_URL") or DEFAULT_ADVISORY_BASE_URL,
            advisory_provider=_env_str(env, "OPENROUTER_PROVIDER"),
            advisory_referer=_env_str(env, "OPENROUTER_REFERER") or "https://threatlens.local",
            advisory_title=_env_str(env, "OPENROUTER_TITLE") or "ThreatLens",
        )

    def with_advisory_key(self, key: str | None) -> Settings:
        """Return a copy using a caller-supplied advisory key, if one is given."""
        if not key or not key.strip():
            return self
        return dataclasses.replace(self, advisory_api_key=key.strip())
