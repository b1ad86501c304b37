# SPDX-License-Identifier: MIT
"""Scan service — runs the full evaluation pipeline for one request.

Pipeline: validate → authorize → parse + scan → policy (allow-list on) →
advisory (optional) → policy (allow-list off) → merge → threshold.

Returns either a ``ScanResponse`` or a ``ScanError``. Only deterministic
findings feed the block decision.
"""

from __future__ import annotations

import asyncio
import hmac
import logging
from dataclasses import dataclass
from typing import Any

from threatlens.advisory import AdvisoryMode, AdvisoryResult, AgentFactory, create_advisor, run_advisory_scan
from threatlens.config import Settings
from threatlens.errors import ErrorKind, ScanError
from threatlens.merge import MergeResult, merge_findings
from threatlens.request import ScanRequest, parse_scan_request
from threatlens.rules.base import Finding, Severity, fail_on_label
from threatlens.rules.config import PolicyOverrides, PolicyPack, list_policy_packs, resolve_policy_pack
from threatlens.rules.context import parse_added_lines
from threatlens.rules.engine import RuleEngine, should_block
from threatlens.rules.policy import apply_policy

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanResponse:
    """Everything a caller sees for a completed scan."""

    pack: PolicyPack
    fail_on: Severity | None
    should_block: bool
    deterministic_findings: list[Finding]
    advisory_findings: list[Finding]
    merged: MergeResult
    advisory: AdvisoryResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "policy": {
                "id": self.pack.id,
                "name": self.pack.name,
                "failOn": fail_on_label(self.fail_on),
            },
            "shouldBlock": self.should_block,
            "summary": self.merged.summary.to_dict(),
            "deterministicSummary": self.merged.deterministic_summary.to_dict(),
            "advisorySummary": self.merged.advisory_summary.to_dict(),
            "findings": [f.to_dict() for f in self.merged.findings],
            "advisory": self.advisory.to_dict(findings_added=len(self.advisory_findings)),
        }


ScanOutcome = ScanResponse | ScanError


def is_authorized(credential: str | None, settings: Settings) -> bool:
    """Constant-time check of the caller credential against the configured key."""
    if not settings.api_key or not credential:
        return False
    return hmac.compare_digest(credential.encode(), settings.api_key.encode())


def _authorize(request: ScanRequest, authorized: bool, settings: Settings) -> ScanError | None:
    if request.overrides is not None and not authorized:
        return ScanError(
            ErrorKind.FORBIDDEN, "overrides are only available for authenticated requests"
        )
    if (
        request.advisory_options.mode is not AdvisoryMode.OFF
        and settings.api_key
        and not authorized
    ):
        return ScanError(ErrorKind.UNAUTHORIZED, "Missing or invalid API key for advisory mode.")
    return None


def scan_deterministic(
    diff_text: str,
    pack: PolicyPack,
    overrides: PolicyOverrides | None = None,
    *,
    engine: RuleEngine | None = None,
) -> list[Finding]:
    """Parse, scan, and filter through the pack with the allow-list enforced."""
    findings = (engine or RuleEngine()).run(parse_added_lines(diff_text))
    return apply_policy(findings, pack, overrides, respect_allow_list=True)


async def evaluate_scan(
    raw_request: Any,
    *,
    settings: Settings,
    credential: str | None = None,
    advisory_api_key: str | None = None,
    agent_factory: AgentFactory = create_advisor,
    engine: RuleEngine | None = None,
) -> ScanOutcome:
    """Evaluate one scan request end to end.

    Args:
        raw_request: A decoded JSON body or an already-validated ScanRequest.
        settings: Process configuration.
        credential: Caller-presented API key, if any.
        advisory_api_key: Caller-supplied advisory model key. Honored only
            for authorized callers.
        agent_factory: Builds the advisory agent (injectable for tests).
        engine: Rule engine to use (defaults to the full registry).
    """
    request = parse_scan_request(raw_request)
    if isinstance(request, ScanError):
        return request

    diff_bytes = len(request.diff.encode("utf-8"))
    if diff_bytes > settings.max_diff_bytes:
        return ScanError(
            ErrorKind.PAYLOAD_TOO_LARGE,
            f"Diff too large ({diff_bytes} bytes). Max supported size is "
            f"{settings.max_diff_bytes} bytes.",
        )

    authorized = is_authorized(credential, settings)
    rejected = _authorize(request, authorized, settings)
    if rejected is not None:
        return rejected

    try:
        pack = resolve_policy_pack(request.pack_id or settings.default_pack_id)
    except ValueError as exc:
        return ScanError(ErrorKind.UNKNOWN_PACK, str(exc))

    fail_on = request.resolve_fail_on(pack.default_fail_on)
    overrides = request.policy_overrides

    try:
        deterministic = scan_deterministic(request.diff, pack, overrides, engine=engine)
    except Exception:
        log.exception("Deterministic scan failed")
        return ScanError(ErrorKind.INTERNAL, "Unexpected error while scanning diff")

    advisory = await run_advisory_scan(
        request.diff,
        deterministic,
        request.advisory_options,
        settings.with_advisory_key(advisory_api_key) if authorized else settings,
        agent_factory=agent_factory,
    )

    try:
        advisory_findings = apply_policy(
            advisory.findings, pack, overrides, respect_allow_list=False
        )
        merged = merge_findings(deterministic, advisory_findings)
        blocked = should_block(deterministic, fail_on)
    except Exception:
        log.exception("Finding merge failed")
        return ScanError(ErrorKind.INTERNAL, "Unexpected error while scanning diff")

    return ScanResponse(
        pack=pack,
        fail_on=fail_on,
        should_block=blocked,
        deterministic_findings=deterministic,
        advisory_findings=advisory_findings,
        merged=merged,
        advisory=advisory,
    )


def run_scan(raw_request: Any, *, settings: Settings, **kwargs: Any) -> ScanOutcome:
    """Synchronous wrapper around ``evaluate_scan`` for callers without a loop."""
    return asyncio.run(evaluate_scan(raw_request, settings=settings, **kwargs))


def list_packs_payload() -> dict[str, Any]:
    """Policy pack listing for transport layers."""
    return {"packs": [pack.to_dict() for pack in list_policy_packs()]}
