# SPDX-License-Identifier: MIT
"""Rule 2: hardcoded-secret — literal credentials assigned in code."""

from __future__ import annotations

import re

from threatlens.rules.base import Severity
from threatlens.rules.context import AddedLine, RuleContext

# name = "literal of 8+ chars" / name: 'literal'
_SECRET_ASSIGN_RE = re.compile(
    r"""\b(?:api[_-]?key|secret|token|password|passwd|private[_-]?key)\b\s*[:=]\s*["'][^"']{8,}["']""",
    re.IGNORECASE,
)


class HardcodedSecretRule:
    """Detect token/password/secret names assigned a quoted literal."""

    id = "hardcoded-secret"
    title = "Possible hardcoded secret"
    severity = Severity.HIGH
    description = (
        "A literal token/password/secret was committed in code. "
        "Move this to a secret manager or env var."
    )

    def match(self, line: AddedLine, ctx: RuleContext) -> str | None:
        return line.text.strip() if _SECRET_ASSIGN_RE.search(line.text) else None
