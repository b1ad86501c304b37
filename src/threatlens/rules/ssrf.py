# SPDX-License-Identifier: MIT
"""Rule 6: ssrf-user-url — outbound request built from a user-controlled URL."""

from __future__ import annotations

import re

from threatlens.rules.base import Severity
from threatlens.rules.context import AddedLine, RuleContext

# HTTP client call followed (within 60 chars) by something that looks like input
_SSRF_RE = re.compile(
    r"\b(?:fetch|axios\.(?:get|post|request)|axios|http\.get|https\.get|got|request)\b.{0,60}"
    r"\b(?:req\.(?:query|params|body)|url|target|endpoint)\b",
    re.IGNORECASE,
)


class SsrfUserUrlRule:
    id = "ssrf-user-url"
    title = "Potential SSRF from user-controlled URL"
    severity = Severity.HIGH
    description = (
        "Outgoing request appears to use user input directly. "
        "Add URL validation and network egress controls."
    )

    def match(self, line: AddedLine, ctx: RuleContext) -> str | None:
        return line.text.strip() if _SSRF_RE.search(line.text) else None
