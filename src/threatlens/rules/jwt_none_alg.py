# SPDX-License-Identifier: MIT
"""Rule 8: jwt-none-alg — JWT verification accepting the unsigned algorithm."""

from __future__ import annotations

import re

from threatlens.rules.base import Severity
from threatlens.rules.context import AddedLine, RuleContext

_ALG_NONE_RE = re.compile(r"""\balg\b\s*[:=]\s*["']none["']""", re.IGNORECASE)


class JwtNoneAlgRule:
    id = "jwt-none-alg"
    title = "JWT algorithm set to none"
    severity = Severity.HIGH
    description = "Accepting JWT alg=none breaks signature validation and can allow forged tokens."

    def match(self, line: AddedLine, ctx: RuleContext) -> str | None:
        return line.text.strip() if _ALG_NONE_RE.search(line.text) else None
