# SPDX-License-Identifier: MIT
"""Rule 7: command-exec-user-input — shell execution interpolating request data."""

from __future__ import annotations

import re

from threatlens.rules.base import Severity
from threatlens.rules.context import AddedLine, RuleContext

_EXEC_RE = re.compile(
    r"\b(?:exec|execSync|spawn|spawnSync)\b.{0,120}(?:req\.(?:query|params|body)|\$\{.*req\.)",
    re.IGNORECASE,
)


class CommandInjectionRule:
    id = "command-exec-user-input"
    title = "Potential command injection"
    severity = Severity.HIGH
    description = (
        "Command execution appears to interpolate user input. "
        "Use safe APIs and strict argument handling."
    )

    def match(self, line: AddedLine, ctx: RuleContext) -> str | None:
        return line.text.strip() if _EXEC_RE.search(line.text) else None
