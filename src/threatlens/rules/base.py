# SPDX-License-Identifier: MIT
"""Severity, finding dataclasses, and the Rule protocol for the scanner."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import IntEnum, StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from threatlens.rules.context import AddedLine, RuleContext


class Severity(IntEnum):
    """Severity levels for findings, ordered for threshold comparison."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: str) -> Severity:
        """Parse a lower-case severity literal.

        Raises:
            ValueError: If the literal is not low, medium, or high.
        """
        try:
            return cls[value.upper()]
        except KeyError:
            msg = f"Invalid severity {value!r}. Use low, medium, or high."
            raise ValueError(msg) from None


FAIL_ON_LEVELS = ("none", "low", "medium", "high")


def parse_fail_on(value: str) -> Severity | None:
    """Parse a fail-on literal. ``"none"`` maps to None (never blocks)."""
    if value == "none":
        return None
    return Severity.parse(value)


def fail_on_label(value: Severity | None) -> str:
    return "none" if value is None else value.label


class FindingSource(StrEnum):
    RULE = "rule"
    ADVISORY = "advisory"


@dataclass(frozen=True)
class Finding:
    """A single rule or advisory match against an added line."""

    rule_id: str
    title: str
    severity: Severity
    description: str
    file_path: str
    line: int
    evidence: str
    source: FindingSource = FindingSource.RULE
    confidence: float | None = None

    @property
    def dedup_key(self) -> tuple[str, str, int, str, str]:
        return (self.rule_id, self.file_path, self.line, self.evidence, self.source.value)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "ruleId": self.rule_id,
            "title": self.title,
            "severity": self.severity.label,
            "description": self.description,
            "filePath": self.file_path,
            "line": self.line,
            "evidence": self.evidence,
            "source": self.source.value,
        }
        if self.confidence is not None:
            data["confidence"] = self.confidence
        return data


@dataclass(frozen=True)
class ScanSummary:
    """Per-severity counts for a finding list. total is always the bucket sum."""

    high: int = 0
    medium: int = 0
    low: int = 0

    @property
    def total(self) -> int:
        return self.high + self.medium + self.low

    @classmethod
    def of(cls, findings: Iterable[Finding]) -> ScanSummary:
        counts = {Severity.HIGH: 0, Severity.MEDIUM: 0, Severity.LOW: 0}
        for f in findings:
            counts[f.severity] += 1
        return cls(
            high=counts[Severity.HIGH],
            medium=counts[Severity.MEDIUM],
            low=counts[Severity.LOW],
        )

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "high": self.high, "medium": self.medium, "low": self.low}


@runtime_checkable
class Rule(Protocol):
    """Protocol that every security rule must satisfy."""

    id: str
    title: str
    severity: Severity
    description: str

    def match(self, line: AddedLine, ctx: RuleContext) -> str | None: ...
