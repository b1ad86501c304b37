# SPDX-License-Identifier: MIT
"""Human-readable rendering of scan results for the terminal."""

from __future__ import annotations

from threatlens.advisory import AdvisoryResult
from threatlens.rules.base import Finding, FindingSource, ScanSummary, fail_on_label
from threatlens.rules.config import PolicyPack
from threatlens.service import ScanResponse

NO_FINDINGS_MESSAGE = "No risky patterns found in added lines."


def _format_finding(f: Finding) -> list[str]:
    header = f"[{f.severity.label.upper()}] {f.title} ({f.rule_id})"
    if f.source is FindingSource.ADVISORY and f.confidence is not None:
        header += f" [advisory, confidence={f.confidence:.2f}]"
    return [
        header,
        f"  at {f.file_path}:{f.line}",
        f"  {f.description}",
        f"  > {f.evidence}",
        "",
    ]


def format_pretty(findings: list[Finding], summary: ScanSummary | None = None) -> str:
    """Render ranked findings followed by a summary line."""
    if not findings:
        return NO_FINDINGS_MESSAGE

    s = summary or ScanSummary.of(findings)
    lines = ["ThreatLens findings", ""]
    for f in findings:
        lines.extend(_format_finding(f))
    lines.append(f"Summary: total={s.total}, high={s.high}, medium={s.medium}, low={s.low}")
    return "\n".join(lines)


def format_advisory_status(advisory: AdvisoryResult, findings_added: int) -> list[str]:
    status = (
        f"Advisory: mode={advisory.mode}, attempted={str(advisory.attempted).lower()}, "
        f"added={findings_added}"
    )
    if advisory.model:
        status += f", model={advisory.model}"
    lines = [status]
    if advisory.reason:
        lines.append(f"Advisory note: {advisory.reason}")
    return lines


def format_response(response: ScanResponse) -> str:
    """Full terminal report: findings, then the policy and advisory lines."""
    lines = [
        format_pretty(response.merged.findings, response.merged.summary),
        f"Policy pack: {response.pack.id} (fail-on={fail_on_label(response.fail_on)})",
        *format_advisory_status(response.advisory, len(response.advisory_findings)),
    ]
    return "\n".join(lines)


def format_pack_listing(packs: list[PolicyPack]) -> str:
    blocks = [
        f"{p.id} - {p.name}\n  {p.description}\n  default fail-on: {fail_on_label(p.default_fail_on)}\n"
        for p in packs
    ]
    return "\n".join(blocks)
