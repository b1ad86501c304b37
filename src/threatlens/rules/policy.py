# SPDX-License-Identifier: MIT
"""Policy engine — apply a pack and per-request overrides to a finding list.

Filters run in a fixed order: allow-list, override disables, override path
ignores, pack path suppressions, then severity remapping. Remapping comes
last so it only touches findings that survived every filter.
"""

from __future__ import annotations

import dataclasses

from threatlens.rules.base import Finding
from threatlens.rules.config import PolicyOverrides, PolicyPack

_NO_OVERRIDES = PolicyOverrides()


def _suppressed_by_pack(finding: Finding, pack: PolicyPack) -> bool:
    return any(
        s.contains in finding.file_path and finding.rule_id in s.disable_rule_ids
        for s in pack.path_suppressions
    )


def apply_policy(
    findings: list[Finding],
    pack: PolicyPack,
    overrides: PolicyOverrides | None = None,
    *,
    respect_allow_list: bool = True,
) -> list[Finding]:
    """Filter and remap findings through a policy pack.

    Args:
        findings: Findings to filter. Order is preserved.
        pack: The policy pack in effect.
        overrides: Optional per-request overrides.
        respect_allow_list: Enforce ``pack.enabled_rule_ids``. Pass False for
            advisory findings, whose rule ids are never in a pack's catalog.
    """
    ov = overrides or _NO_OVERRIDES
    ignored_parts = [p for p in ov.ignore_paths_containing if p]

    result: list[Finding] = []
    for f in findings:
        if (
            respect_allow_list
            and pack.enabled_rule_ids is not None
            and f.rule_id not in pack.enabled_rule_ids
        ):
            continue
        if f.rule_id in ov.disable_rule_ids:
            continue
        if any(part in f.file_path for part in ignored_parts):
            continue
        if _suppressed_by_pack(f, pack):
            continue
        result.append(f)

    if not ov.severity_overrides:
        return result
    return [
        dataclasses.replace(f, severity=ov.severity_overrides[f.rule_id])
        if f.rule_id in ov.severity_overrides
        else f
        for f in result
    ]
