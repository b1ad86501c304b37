# SPDX-License-Identifier: MIT
"""Rule 3: tls-verification-disabled — certificate checks turned off."""

from __future__ import annotations

import re

from threatlens.rules.base import Severity
from threatlens.rules.context import AddedLine, RuleContext

_TLS_OFF_RE = re.compile(
    r"\b(?:rejectUnauthorized|ssl_verify|insecureSkipVerify|verify|checkServerIdentity)\b"
    r"\s*[:=]\s*(?:false|0|null)",
    re.IGNORECASE,
)


class TlsVerificationRule:
    id = "tls-verification-disabled"
    title = "TLS verification looks disabled"
    severity = Severity.HIGH
    description = "TLS verification appears disabled. This can expose traffic to MITM attacks."

    def match(self, line: AddedLine, ctx: RuleContext) -> str | None:
        return line.text.strip() if _TLS_OFF_RE.search(line.text) else None
