# SPDX-License-Identifier: MIT
"""Policy pack registry — immutable, named configurations for the scanner."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from threatlens.rules.base import Severity, fail_on_label
from threatlens.rules.registry import RULE_IDS


@dataclass(frozen=True)
class PathSuppression:
    """Disable the listed rules for any file whose path contains ``contains``."""

    contains: str
    disable_rule_ids: frozenset[str]


@dataclass(frozen=True)
class PolicyPack:
    """A named policy: allow-listed rules, path suppressions, default threshold."""

    id: str
    name: str
    description: str
    default_fail_on: Severity | None
    enabled_rule_ids: frozenset[str] | None = None
    path_suppressions: tuple[PathSuppression, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "defaultFailOn": fail_on_label(self.default_fail_on),
        }


@dataclass(frozen=True)
class PolicyOverrides:
    """Per-request policy adjustments. Never persisted."""

    disable_rule_ids: frozenset[str] = frozenset()
    ignore_paths_containing: tuple[str, ...] = ()
    severity_overrides: MappingProxyType[str, Severity] = field(
        default_factory=lambda: MappingProxyType({})
    )


_POLICY_PACKS: tuple[PolicyPack, ...] = (
    PolicyPack(
        id="startup-default",
        name="Startup Default",
        description=(
            "Balanced defaults for SaaS teams. Catch high-impact issues "
            "without blocking low-signal patterns."
        ),
        default_fail_on=Severity.HIGH,
        enabled_rule_ids=RULE_IDS,
        path_suppressions=(
            PathSuppression(contains="test/", disable_rule_ids=frozenset({"hardcoded-secret"})),
        ),
    ),
    PolicyPack(
        id="tenant-isolation",
        name="Tenant Isolation Strict",
        description=(
            "Stricter profile for multi-tenant products where auth and data "
            "boundary regressions are non-negotiable."
        ),
        default_fail_on=Severity.MEDIUM,
        enabled_rule_ids=RULE_IDS,
        path_suppressions=(
            PathSuppression(contains="fixtures/", disable_rule_ids=frozenset({"hardcoded-secret"})),
            PathSuppression(contains="examples/", disable_rule_ids=frozenset({"hardcoded-secret"})),
        ),
    ),
)

POLICY_PACKS: MappingProxyType[str, PolicyPack] = MappingProxyType(
    {pack.id: pack for pack in _POLICY_PACKS}
)
DEFAULT_PACK_ID = _POLICY_PACKS[0].id


def list_policy_packs() -> list[PolicyPack]:
    """Return all registered packs in registration order."""
    return list(_POLICY_PACKS)


def resolve_policy_pack(pack_id: str | None = None) -> PolicyPack:
    """Look up a pack by id. None or empty → the default pack.

    Raises:
        ValueError: If the id is not registered. The message lists known ids.
    """
    if not pack_id:
        return POLICY_PACKS[DEFAULT_PACK_ID]
    if pack_id not in POLICY_PACKS:
        msg = f"Unknown policy pack {pack_id!r}. Available packs: {', '.join(POLICY_PACKS)}"
        raise ValueError(msg)
    return POLICY_PACKS[pack_id]
