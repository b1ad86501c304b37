# SPDX-License-Identifier: MIT
"""Security rule engine — deterministic pattern rules over added diff lines."""

from threatlens.rules.base import (
    Finding,
    FindingSource,
    Rule,
    ScanSummary,
    Severity,
    parse_fail_on,
)
from threatlens.rules.config import (
    PathSuppression,
    PolicyOverrides,
    PolicyPack,
    list_policy_packs,
    resolve_policy_pack,
)
from threatlens.rules.context import AddedLine, RuleContext, parse_added_lines
from threatlens.rules.engine import RuleEngine, dedupe_findings, should_block, sort_findings
from threatlens.rules.policy import apply_policy

__all__ = [
    "AddedLine",
    "Finding",
    "FindingSource",
    "PathSuppression",
    "PolicyOverrides",
    "PolicyPack",
    "Rule",
    "RuleContext",
    "RuleEngine",
    "ScanSummary",
    "Severity",
    "apply_policy",
    "dedupe_findings",
    "list_policy_packs",
    "parse_added_lines",
    "parse_fail_on",
    "resolve_policy_pack",
    "run_rules",
    "should_block",
    "sort_findings",
]


def run_rules(diff: str) -> list[Finding]:
    """Convenience: parse diff, run all rules, return ranked findings."""
    return RuleEngine().run(parse_added_lines(diff))
