# SPDX-License-Identifier: MIT
"""Rule 4: cors-wildcard-credentials — wildcard origin paired with credentials.

Window-based: both signals must appear within ``WINDOW`` added lines of the
current line in the same file. Unchanged lines between them are invisible
to the rule, so a pair split by an unchanged line can be missed.
"""

from __future__ import annotations

import re

from threatlens.rules.base import Severity
from threatlens.rules.context import AddedLine, RuleContext

WINDOW = 5

_WILDCARD_ORIGIN_RES = (
    re.compile(r"""origin\s*:\s*["'`]\*["'`]""", re.IGNORECASE),
    re.compile(r"""Access-Control-Allow-Origin\s*[:=]\s*["'`]\*["'`]""", re.IGNORECASE),
)
_CREDENTIALS_RES = (
    re.compile(r"credentials\s*:\s*true", re.IGNORECASE),
    re.compile(r"""Access-Control-Allow-Credentials\s*[:=]\s*["'`]true["'`]""", re.IGNORECASE),
)


def _any_match(patterns: tuple[re.Pattern[str], ...], text: str) -> bool:
    return any(p.search(text) for p in patterns)


class CorsWildcardCredentialsRule:
    """Flag CORS configs that allow any origin while sending credentials."""

    id = "cors-wildcard-credentials"
    title = "Wildcard CORS origin with credentials"
    severity = Severity.HIGH
    description = "Using origin '*' with credentials enabled can leak authenticated data cross-site."

    def match(self, line: AddedLine, ctx: RuleContext) -> str | None:
        window = "\n".join(ctx.nearby(WINDOW))
        if _any_match(_WILDCARD_ORIGIN_RES, window) and _any_match(_CREDENTIALS_RES, window):
            return line.text.strip()
        return None
