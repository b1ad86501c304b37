"""ThreatLens — diff-aware security scanner with an optional advisory model."""

__version__ = "0.2.0"

from threatlens.advisory import (  # noqa: E402
    AdvisoryMode,
    AdvisoryOptions,
    AdvisoryResult,
    run_advisory_scan,
    should_escalate,
)
from threatlens.config import Settings  # noqa: E402
from threatlens.errors import ErrorKind, ScanError  # noqa: E402
from threatlens.merge import MergeResult, merge_findings  # noqa: E402
from threatlens.output import format_pretty  # noqa: E402
from threatlens.request import ScanRequest, parse_scan_request  # noqa: E402
from threatlens.rules import (  # noqa: E402
    Finding,
    PolicyOverrides,
    PolicyPack,
    Severity,
    apply_policy,
    list_policy_packs,
    parse_added_lines,
    resolve_policy_pack,
    run_rules,
    should_block,
)
from threatlens.service import (  # noqa: E402
    ScanResponse,
    evaluate_scan,
    is_authorized,
    list_packs_payload,
    run_scan,
)

__all__ = [
    "AdvisoryMode",
    "AdvisoryOptions",
    "AdvisoryResult",
    "ErrorKind",
    "Finding",
    "MergeResult",
    "PolicyOverrides",
    "PolicyPack",
    "ScanError",
    "ScanRequest",
    "ScanResponse",
    "Settings",
    "Severity",
    "__version__",
    "apply_policy",
    "evaluate_scan",
    "format_pretty",
    "is_authorized",
    "list_packs_payload",
    "list_policy_packs",
    "merge_findings",
    "parse_added_lines",
    "parse_scan_request",
    "resolve_policy_pack",
    "run_advisory_scan",
    "run_rules",
    "should_block",
    "should_escalate",
]
