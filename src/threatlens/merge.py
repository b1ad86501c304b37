# SPDX-License-Identifier: MIT
"""Finding merger — combine deterministic and advisory findings for output."""

from __future__ import annotations

from dataclasses import dataclass

from threatlens.rules.base import Finding, ScanSummary
from threatlens.rules.engine import dedupe_findings, sort_findings


@dataclass(frozen=True)
class MergeResult:
    findings: list[Finding]
    summary: ScanSummary
    deterministic_summary: ScanSummary
    advisory_summary: ScanSummary


def merge_findings(deterministic: list[Finding], advisory: list[Finding]) -> MergeResult:
    """Concatenate, dedupe on the full key (incl. source), and rank.

    The full key ``(rule_id, file_path, line, evidence, source)`` is the
    canonical uniqueness key for anything a caller sees.
    """
    combined = sort_findings(dedupe_findings([*deterministic, *advisory]))
    return MergeResult(
        findings=combined,
        summary=ScanSummary.of(combined),
        deterministic_summary=ScanSummary.of(deterministic),
        advisory_summary=ScanSummary.of(advisory),
    )
