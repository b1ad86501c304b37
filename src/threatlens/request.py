# SPDX-License-Identifier: MIT
"""Scan request schema — validates untrusted input into typed options.

Validation failures come back as ``ScanError`` values with one specific
message per violated constraint; nothing here raises past the module.
"""

from __future__ import annotations

import json
from types import MappingProxyType
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from threatlens.advisory import AdvisoryMode, AdvisoryOptions
from threatlens.errors import ErrorKind, ScanError
from threatlens.rules.base import Severity, parse_fail_on
from threatlens.rules.config import PolicyOverrides

MAX_MODEL_ID_CHARS = 80


class OverridesPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    disable_rules: list[StrictStr] | None = Field(default=None, alias="disableRules")
    ignore_paths_containing: list[StrictStr] | None = Field(
        default=None, alias="ignorePathsContaining"
    )
    severity_overrides: dict[StrictStr, Any] | None = Field(
        default=None, alias="severityOverrides"
    )

    @field_validator("severity_overrides")
    @classmethod
    def _levels_only(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        for rule_id, level in (value or {}).items():
            if level not in ("low", "medium", "high"):
                msg = f"Invalid severity override for '{rule_id}'. Use low, medium, or high."
                raise ValueError(msg)
        return value

    def to_overrides(self) -> PolicyOverrides:
        return PolicyOverrides(
            disable_rule_ids=frozenset(self.disable_rules or ()),
            ignore_paths_containing=tuple(self.ignore_paths_containing or ()),
            severity_overrides=MappingProxyType(
                {k: Severity.parse(v) for k, v in (self.severity_overrides or {}).items()}
            ),
        )


class AdvisoryPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    mode: Literal["off", "auto", "always"] = "off"
    model: StrictStr | None = Field(default=None, max_length=MAX_MODEL_ID_CHARS)
    timeout_ms: StrictInt | StrictFloat | None = Field(default=None, alias="timeoutMs")
    max_findings: StrictInt | StrictFloat | None = Field(default=None, alias="maxFindings")

    def to_options(self) -> AdvisoryOptions:
        return AdvisoryOptions(
            mode=AdvisoryMode(self.mode),
            model=self.model or None,
            timeout_ms=None if self.timeout_ms is None else int(self.timeout_ms),
            max_findings=None if self.max_findings is None else int(self.max_findings),
        )


class ScanRequest(BaseModel):
    """A validated scan request. ``llm`` is accepted as an alias of ``advisory``."""

    model_config = ConfigDict(populate_by_name=True)

    diff: StrictStr
    pack_id: StrictStr | None = Field(default=None, alias="packId")
    fail_on: Literal["none", "low", "medium", "high"] | None = Field(default=None, alias="failOn")
    overrides: OverridesPayload | None = None
    advisory: AdvisoryPayload | None = Field(
        default=None, validation_alias=AliasChoices("advisory", "llm")
    )

    @property
    def advisory_options(self) -> AdvisoryOptions:
        return self.advisory.to_options() if self.advisory else AdvisoryOptions()

    @property
    def policy_overrides(self) -> PolicyOverrides | None:
        return self.overrides.to_overrides() if self.overrides else None

    def resolve_fail_on(self, default: Severity | None) -> Severity | None:
        return default if self.fail_on is None else parse_fail_on(self.fail_on)


# Messages keyed on the (alias) location of the offending field.
_FIELD_MESSAGES: dict[tuple[str, ...], str] = {
    (): "Body must be a JSON object",
    ("diff",): "Missing required field: diff (string)",
    ("packId",): "packId must be a string",
    ("failOn",): "failOn must be one of: none, low, medium, high",
    ("overrides",): "overrides must be an object",
    ("overrides", "disableRules"): "overrides.disableRules must be an array of strings",
    ("overrides", "ignorePathsContaining"): (
        "overrides.ignorePathsContaining must be an array of strings"
    ),
    ("overrides", "severityOverrides"): "overrides.severityOverrides must be an object",
    ("advisory",): "advisory must be an object",
    ("advisory", "mode"): "advisory.mode must be one of: off, auto, always",
    ("advisory", "model"): f"advisory.model must be a string up to {MAX_MODEL_ID_CHARS} chars",
    ("advisory", "timeoutMs"): "advisory.timeoutMs must be a number",
    ("advisory", "maxFindings"): "advisory.maxFindings must be a number",
}


def _normalize_loc(loc: tuple[Any, ...]) -> tuple[str, ...]:
    parts = tuple(str(p) for p in loc)
    if parts and parts[0] == "llm":
        parts = ("advisory", *parts[1:])
    return parts


def _error_message(e: ValidationError) -> str:
    """Pick a specific, caller-facing message for the first violated constraint."""
    err = e.errors()[0]
    if err["type"] == "value_error" and "error" in err.get("ctx", {}):
        return str(err["ctx"]["error"])
    loc = _normalize_loc(err["loc"])
    for end in range(len(loc), -1, -1):
        message = _FIELD_MESSAGES.get(loc[:end])
        if message is not None:
            return message
    return f"Invalid request: {'.'.join(loc)}: {err['type']}"


def parse_scan_request(raw: Any) -> ScanRequest | ScanError:
    """Validate a decoded request body."""
    if isinstance(raw, ScanRequest):
        return raw
    if not isinstance(raw, dict):
        return ScanError(ErrorKind.INVALID_REQUEST, _FIELD_MESSAGES[()])
    try:
        return ScanRequest.model_validate(raw)
    except ValidationError as e:
        return ScanError(ErrorKind.INVALID_REQUEST, _error_message(e))


def parse_scan_request_json(body: str | bytes) -> ScanRequest | ScanError:
    """Decode and validate a JSON request body."""
    try:
        raw = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return ScanError(ErrorKind.INVALID_REQUEST, "Invalid JSON body")
    return parse_scan_request(raw)
