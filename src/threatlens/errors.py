# SPDX-License-Identifier: MIT
"""Error kinds for scan requests and the single boundary translator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    INVALID_REQUEST = "invalid_request"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    UNKNOWN_PACK = "unknown_pack"
    FORBIDDEN = "forbidden"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]

    @property
    def is_validation(self) -> bool:
        return self is not ErrorKind.INTERNAL


_HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.PAYLOAD_TOO_LARGE: 413,
    ErrorKind.UNKNOWN_PACK: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.INTERNAL: 500,
}

# Exit code for any rejected or failed scan (1 is reserved for "blocked")
CLI_ERROR_EXIT_CODE = 2


@dataclass(frozen=True)
class ScanError:
    """A rejected or failed scan. Returned as a value, never raised."""

    kind: ErrorKind
    message: str

    def to_transport(self) -> tuple[int, dict[str, Any]]:
        """Translate to an (HTTP status, JSON body) pair."""
        return self.kind.http_status, {"error": self.message, "kind": self.kind.value}
