"""
ShiftCI DATA MODEL
------------------
Shared vocabulary of the migration rule engine.

Everything that crosses a subsystem boundary is declared here as a frozen
dataclass or an Enum, so the scanner, knowledge base, verdict generator,
credential tooling and synthesizer all speak the same types.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class PipelineKind(Enum):
    DECLARATIVE = "declarative"
    SCRIPTED = "scripted"
    UNKNOWN = "unknown"


class Tier(Enum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    def at_least(self, other: "Tier") -> "Tier":
        """Returns the higher of the two tiers (tiers never downgrade)."""
        return self if self.rank >= other.rank else other


_TIER_RANK = {Tier.SIMPLE: 0, Tier.MEDIUM: 1, Tier.COMPLEX: 2}


class CompatibilityStatus(Enum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    DEPRECATED = "deprecated"
    ABANDONED = "abandoned"
    UNKNOWN = "unknown"

    @property
    def is_retired(self) -> bool:
        return self in (CompatibilityStatus.DEPRECATED, CompatibilityStatus.ABANDONED)


class RiskTag(Enum):
    SECURITY = "security"
    LICENSING = "licensing"
    BEHAVIOR_CHANGE = "behavior-change"
    PERFORMANCE = "performance"
    NONE = "none"


class RiskType(Enum):
    SECURITY = "security"
    LICENSING = "licensing"
    BEHAVIOR_CHANGE = "behavior-change"
    PERFORMANCE = "performance"
    MAINTENANCE = "maintenance"
    COMPATIBILITY = "compatibility"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2, Severity.CRITICAL: 3}


class Priority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Readiness(Enum):
    READY = "ready"
    NEEDS_PREPARATION = "needs-preparation"
    SIGNIFICANT_WORK_NEEDED = "significant-work-needed"


class CredentialKind(Enum):
    USERNAME_PASSWORD = "usernamePassword"
    SECRET_TEXT = "secretText"
    FILE = "file"
    SSH_KEY = "sshKey"
    CERTIFICATE = "certificate"
    UNKNOWN = "unknown"


class VariableType(Enum):
    VARIABLE = "variable"
    FILE = "file"


def _plain(value: Any) -> Any:
    """Recursively converts enums/tuples/frozensets into JSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, frozenset):
        return sorted(_plain(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Scanner output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FeatureHit:
    key: str
    display_name: str
    category: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Parameter:
    name: str
    type: str  # string | boolean | choice | text | password
    default: Optional[str] = None
    description: Optional[str] = None
    choices: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass(frozen=True)
class PipelineDetails:
    """Structured pipeline directives recovered alongside the feature scan."""
    parameters: Tuple[Parameter, ...] = ()
    environment: Tuple[Tuple[str, str], ...] = ()
    matrix_axes: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    parallel_stages: Tuple[str, ...] = ()
    timeout_minutes: Optional[int] = None
    retry: Optional[int] = None
    post_actions: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    build_discarder: Tuple[Tuple[str, int], ...] = ()
    when_conditions: Tuple[Tuple[str, str], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameters": [p.to_dict() for p in self.parameters],
            "environment": dict(self.environment),
            "matrix_axes": {name: list(values) for name, values in self.matrix_axes},
            "parallel_stages": list(self.parallel_stages),
            "timeout_minutes": self.timeout_minutes,
            "retry": self.retry,
            "post_actions": {cond: list(actions) for cond, actions in self.post_actions},
            "build_discarder": dict(self.build_discarder),
            "when_conditions": [{"kind": k, "value": v} for k, v in self.when_conditions],
        }


@dataclass(frozen=True)
class ScanProfile:
    pipeline_kind: PipelineKind
    feature_hits: Tuple[FeatureHit, ...]
    line_count: int
    complexity_tier: Tier
    warnings: Tuple[str, ...] = ()
    details: PipelineDetails = field(default_factory=PipelineDetails)

    @property
    def feature_count(self) -> int:
        return len(self.feature_hits)

    @property
    def feature_keys(self) -> List[str]:
        return [hit.key for hit in self.feature_hits]

    def has(self, key: str) -> bool:
        return any(hit.key == key for hit in self.feature_hits)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pipeline_kind": self.pipeline_kind.value,
            "feature_hits": [h.to_dict() for h in self.feature_hits],
            "feature_count": self.feature_count,
            "line_count": self.line_count,
            "complexity_tier": self.complexity_tier.value,
            "warnings": list(self.warnings),
            "details": self.details.to_dict(),
        }


# ---------------------------------------------------------------------------
# Knowledge base & verdicts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class KnowledgeEntry:
    key: str
    status: CompatibilityStatus
    target_equivalent: Optional[str] = None
    alternatives: Tuple[str, ...] = ()
    risk_tags: FrozenSet[RiskTag] = frozenset()
    notes: str = ""
    include: Optional[str] = None
    documentation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass(frozen=True)
class Risk:
    type: RiskType
    severity: Severity
    description: str
    mitigation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass(frozen=True)
class MigrationPath:
    complexity: str  # simple | moderate | complex
    steps: Tuple[str, ...]
    estimated_effort: str  # low | medium | high | very-high

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass(frozen=True)
class Verdict:
    feature: FeatureHit
    compatibility: KnowledgeEntry
    risks: Tuple[Risk, ...]
    migration_path: MigrationPath

    @property
    def max_severity(self) -> Optional[Severity]:
        if not self.risks:
            return None
        return max((r.severity for r in self.risks), key=lambda s: s.rank)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feature": self.feature.to_dict(),
            "compatibility": self.compatibility.to_dict(),
            "risks": [r.to_dict() for r in self.risks],
            "migration_path": self.migration_path.to_dict(),
        }


@dataclass(frozen=True)
class Recommendation:
    feature_key: str
    title: str
    description: str
    priority: Priority
    category: str

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass(frozen=True)
class ScanSummary:
    total: int
    total_by_status: Dict[str, int]
    total_risks_by_type: Dict[str, int]
    migration_readiness: Readiness
    migration_score: int

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


# ---------------------------------------------------------------------------
# Credentials & variables
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CredentialHit:
    id: str
    line: int
    kind: CredentialKind
    raw_match: str
    context: str
    column: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass(frozen=True)
class VariableSpec:
    original_id: str
    occurrence: int
    proposed_key: str
    type: VariableType
    masked: bool
    protected: bool
    environment_scope: str = "*"
    description: str = ""
    # "USER" or "PASS" for the two halves of a username/password credential
    part: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


# ---------------------------------------------------------------------------
# Synthesized document
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


@dataclass(frozen=True)
class JobSpec:
    stage: str
    script: Tuple[str, ...]
    image: Optional[str] = None
    services: Tuple[str, ...] = ()
    artifacts: Optional[Dict[str, Any]] = None
    needs: Tuple[str, ...] = ()
    only: Tuple[str, ...] = ()
    parallel_matrix: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    retry: Optional[int] = None
    timeout: Optional[str] = None
    allow_failure: bool = False
    when: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Renders the job in GitLab CI key order, omitting empty fields."""
        out: Dict[str, Any] = {"stage": self.stage}
        if self.image:
            out["image"] = self.image
        if self.services:
            out["services"] = list(self.services)
        if self.needs:
            out["needs"] = list(self.needs)
        if self.parallel_matrix:
            out["parallel"] = {"matrix": [{name: list(values) for name, values in self.parallel_matrix}]}
        out["script"] = list(self.script)
        if self.artifacts:
            out["artifacts"] = self.artifacts
        if self.only:
            out["only"] = list(self.only)
        if self.retry is not None:
            out["retry"] = self.retry
        if self.timeout:
            out["timeout"] = self.timeout
        if self.allow_failure:
            out["allow_failure"] = True
        if self.when:
            out["when"] = self.when
        return out


@dataclass(frozen=True)
class TargetDocument:
    stages: Tuple[str, ...]
    variables: Dict[str, str] = field(default_factory=dict)
    default_image: Optional[str] = None
    default_services: Tuple[str, ...] = ()
    cache_paths: Tuple[str, ...] = ()
    include: Tuple[str, ...] = ()
    workflow_rules: Tuple[Dict[str, Any], ...] = ()
    jobs: Dict[str, JobSpec] = field(default_factory=dict)
    required_variables: Tuple[str, ...] = ()
    notes: Tuple[str, ...] = ()
    validation: ValidationResult = field(default_factory=lambda: ValidationResult(valid=False))

    def to_dict(self) -> Dict[str, Any]:
        """GitLab CI mapping (header notes are rendered separately as comments)."""
        out: Dict[str, Any] = {}
        if self.workflow_rules:
            out["workflow"] = {"rules": [dict(r) for r in self.workflow_rules]}
        if self.include:
            out["include"] = [{"template": t} for t in self.include]
        if self.variables:
            out["variables"] = dict(self.variables)
        default: Dict[str, Any] = {}
        if self.default_image:
            default["image"] = self.default_image
        if self.default_services:
            default["services"] = list(self.default_services)
        if self.cache_paths:
            default["cache"] = {"paths": list(self.cache_paths)}
        if default:
            out["default"] = default
        out["stages"] = list(self.stages)
        for name, job in self.jobs.items():
            out[name] = job.to_dict()
        return out
