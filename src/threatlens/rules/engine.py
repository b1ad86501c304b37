# SPDX-License-Identifier: MIT
"""Rule engine — runs rule classes over added lines, ranks, and gates findings."""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable, Iterable
from typing import TYPE_CHECKING

from threatlens.rules.base import Finding, FindingSource, Rule, Severity
from threatlens.rules.context import RuleContext, group_by_file

if TYPE_CHECKING:
    from threatlens.rules.context import AddedLine

log = logging.getLogger(__name__)


def _scan_key(f: Finding) -> tuple[str, str, int, str]:
    # Single-source pass: source is always "rule" here
    return (f.rule_id, f.file_path, f.line, f.evidence)


def dedupe_findings(
    findings: Iterable[Finding],
    key: Callable[[Finding], Hashable] = lambda f: f.dedup_key,
) -> list[Finding]:
    """Drop later findings whose key was already seen. First occurrence wins."""
    seen: set[Hashable] = set()
    result: list[Finding] = []
    for f in findings:
        k = key(f)
        if k in seen:
            continue
        seen.add(k)
        result.append(f)
    return result


def sort_findings(findings: Iterable[Finding]) -> list[Finding]:
    """Rank by severity descending, then file path, then line (both ascending)."""
    return sorted(findings, key=lambda f: (-f.severity, f.file_path, f.line))


def should_block(findings: Iterable[Finding], fail_on: Severity | None) -> bool:
    """Return True if any finding meets or exceeds ``fail_on``. None never blocks.

    Callers pass deterministic findings only; advisory findings never gate.
    """
    if fail_on is None:
        return False
    return any(f.severity >= fail_on for f in findings)


class RuleEngine:
    """Instantiates rules from class registry and runs them per added line."""

    def __init__(self, rule_classes: list[type[Rule]] | None = None) -> None:
        from threatlens.rules.registry import RULE_REGISTRY

        classes = RULE_REGISTRY if rule_classes is None else rule_classes
        self._rules: list[Rule] = [cls() for cls in classes]

    @property
    def rule_ids(self) -> list[str]:
        return [r.id for r in self._rules]

    def run(self, added_lines: list[AddedLine]) -> list[Finding]:
        """Run every rule over every added line; dedupe and rank the matches."""
        findings: list[Finding] = []
        for file_path, lines in group_by_file(added_lines).items():
            frozen = tuple(lines)
            for index, line in enumerate(frozen):
                ctx = RuleContext(lines_in_file=frozen, index_in_file=index)
                for rule in self._rules:
                    evidence = self._match(rule, line, ctx)
                    if not evidence:
                        continue
                    findings.append(
                        Finding(
                            rule_id=rule.id,
                            title=rule.title,
                            severity=rule.severity,
                            description=rule.description,
                            file_path=file_path,
                            line=line.line_number,
                            evidence=evidence,
                            source=FindingSource.RULE,
                        )
                    )
        return sort_findings(dedupe_findings(findings, key=_scan_key))

    @staticmethod
    def _match(rule: Rule, line: AddedLine, ctx: RuleContext) -> str | None:
        """Run one rule on one line; a failing rule is skipped for that line."""
        try:
            return rule.match(line, ctx)
        except Exception:
            log.warning(
                "Rule %s failed on %s:%d; skipping",
                getattr(rule, "id", type(rule).__name__),
                line.file_path,
                line.line_number,
                exc_info=True,
            )
            return None

    def check_gate(self, findings: list[Finding], fail_on: Severity | None) -> bool:
        """Return True if any finding meets or exceeds the fail-on threshold."""
        return should_block(findings, fail_on)
