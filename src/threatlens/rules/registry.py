# SPDX-License-Identifier: MIT
"""Rule class registry — explicit list of all rule classes."""

from __future__ import annotations

from threatlens.rules.auth_bypass import AuthBypassRule
from threatlens.rules.base import Rule
from threatlens.rules.command_injection import CommandInjectionRule
from threatlens.rules.cors_credentials import CorsWildcardCredentialsRule
from threatlens.rules.hardcoded_secret import HardcodedSecretRule
from threatlens.rules.jwt_none_alg import JwtNoneAlgRule
from threatlens.rules.open_redirect import OpenRedirectRule
from threatlens.rules.ssrf import SsrfUserUrlRule
from threatlens.rules.tls_verification import TlsVerificationRule

RULE_REGISTRY: list[type[Rule]] = [
    AuthBypassRule,
    HardcodedSecretRule,
    TlsVerificationRule,
    CorsWildcardCredentialsRule,
    OpenRedirectRule,
    SsrfUserUrlRule,
    CommandInjectionRule,
    JwtNoneAlgRule,
]

RULE_IDS: frozenset[str] = frozenset(cls.id for cls in RULE_REGISTRY)
