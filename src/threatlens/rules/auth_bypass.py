# SPDX-License-Identifier: MIT
"""Rule 1: auth-bypass-toggle — auth or permission checks switched off."""

from __future__ import annotations

import re

from threatlens.rules.base import Severity
from threatlens.rules.context import AddedLine, RuleContext

_AUTH_TERMS = r"(?:auth|authorization|permission|rbac|acl)"

# Either order: "<auth term> ... disabled" or "bypass... <auth term>", within 40 chars
_BYPASS_RE = re.compile(
    rf"\b{_AUTH_TERMS}\b.{{0,40}}\b(?:disabled?|off|false|bypass|skip)\b"
    rf"|\b(?:disable|bypass|skip)\w*\b.{{0,40}}\b{_AUTH_TERMS}\b",
    re.IGNORECASE,
)


class AuthBypassRule:
    """Flag added lines that appear to disable or bypass auth checks."""

    id = "auth-bypass-toggle"
    title = "Auth checks look bypassed or disabled"
    severity = Severity.HIGH
    description = (
        "Code appears to disable auth or permission checks. "
        "This is a common source of privilege escalation."
    )

    def match(self, line: AddedLine, ctx: RuleContext) -> str | None:
        return line.text.strip() if _BYPASS_RE.search(line.text) else None
