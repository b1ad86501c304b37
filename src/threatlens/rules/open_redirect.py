# SPDX-License-Identifier: MIT
"""Rule 5: open-redirect — redirect target taken from request input."""

from __future__ import annotations

import re

from threatlens.rules.base import Severity
from threatlens.rules.context import AddedLine, RuleContext

_REDIRECT_RE = re.compile(
    r"\b(?:redirect|location|res\.redirect|window\.location)\b.{0,50}"
    r"\b(?:req\.(?:query|params|body)|next|returnTo|redirectUrl|url)\b",
    re.IGNORECASE,
)


class OpenRedirectRule:
    id = "open-redirect"
    title = "Potential open redirect"
    severity = Severity.MEDIUM
    description = (
        "Redirect target appears user-controlled. "
        "Validate against an allowlist before redirecting."
    )

    def match(self, line: AddedLine, ctx: RuleContext) -> str | None:
        return line.text.strip() if _REDIRECT_RE.search(line.text) else None
