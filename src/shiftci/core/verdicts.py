"""
ShiftCI VERDICT GENERATOR
-------------------------
Turns detected features into compatibility verdicts.

For each feature:
1. Look up the knowledge base entry (unknown keys get an 'unknown' entry)
2. Derive risks from the feature category, entry risk tags and status
3. Build a migration path (complexity, ordered steps, effort)

Aggregates: ScanSummary (counts + readiness), prioritized recommendations
and a Markdown migration checklist.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from shiftci.core.knowledge import assess_compatibility
from shiftci.models import (
    CompatibilityStatus,
    FeatureHit,
    KnowledgeEntry,
    MigrationPath,
    Priority,
    Readiness,
    Recommendation,
    Risk,
    RiskTag,
    RiskType,
    ScanProfile,
    ScanSummary,
    Severity,
    Verdict,
)
from shiftci.parsers.scanner import FEATURE_PATTERNS

logger = logging.getLogger("shiftci.verdicts")

# (complexity, effort) per status. Every status must be listed.
PATH_SHAPE: Mapping[CompatibilityStatus, tuple] = {
    CompatibilityStatus.ACTIVE: ("simple", "low"),
    CompatibilityStatus.MAINTENANCE: ("moderate", "medium"),
    CompatibilityStatus.DEPRECATED: ("complex", "high"),
    CompatibilityStatus.ABANDONED: ("complex", "very-high"),
    CompatibilityStatus.UNKNOWN: ("complex", "high"),
}

STATUS_SCORE: Mapping[CompatibilityStatus, int] = {
    CompatibilityStatus.ACTIVE: 100,
    CompatibilityStatus.MAINTENANCE: 85,
    CompatibilityStatus.UNKNOWN: 40,
    CompatibilityStatus.DEPRECATED: 30,
    CompatibilityStatus.ABANDONED: 0,
}

TAG_RISKS = {
    RiskTag.LICENSING: (RiskType.LICENSING, Severity.MEDIUM,
                        "Licensing terms differ between the Jenkins plugin and its GitLab counterpart.",
                        "Confirm the GitLab tier and third-party licences cover this usage."),
    RiskTag.BEHAVIOR_CHANGE: (RiskType.BEHAVIOR_CHANGE, Severity.MEDIUM,
                              "The GitLab equivalent behaves differently from the Jenkins feature.",
                              "Compare pipeline results side by side before cutting over."),
    RiskTag.PERFORMANCE: (RiskType.PERFORMANCE, Severity.LOW,
                          "Runtime characteristics may change after migration.",
                          "Benchmark job duration and tune caching or runner sizing."),
}

_CATEGORY_BY_KEY = {p.key: (p.name, p.category) for p in FEATURE_PATTERNS}


def _as_hit(feature: Union[FeatureHit, str]) -> FeatureHit:
    if isinstance(feature, FeatureHit):
        return feature
    name, category = _CATEGORY_BY_KEY.get(feature, (feature, "other"))
    return FeatureHit(feature, name, category)


def derive_risks(hit: FeatureHit, entry: KnowledgeEntry) -> List[Risk]:
    risks: List[Risk] = []
    status = entry.status

    if hit.category == "security" or RiskTag.SECURITY in entry.risk_tags:
        severity = Severity.HIGH if status.is_retired else Severity.MEDIUM
        risks.append(Risk(
            RiskType.SECURITY, severity,
            f"{hit.display_name} handles secrets or security controls.",
            "Recreate credentials as masked/protected variables and review access scopes.",
        ))

    # Iterate in enum order so risk lists are deterministic
    for tag in RiskTag:
        if tag in entry.risk_tags and tag in TAG_RISKS:
            rtype, severity, description, mitigation = TAG_RISKS[tag]
            risks.append(Risk(rtype, severity, description, mitigation))

    if status is CompatibilityStatus.DEPRECATED:
        risks.append(Risk(
            RiskType.MAINTENANCE, Severity.HIGH,
            f"{hit.display_name} is deprecated.",
            "Plan a replacement as part of this migration.",
        ))
    elif status is CompatibilityStatus.ABANDONED:
        risks.append(Risk(
            RiskType.MAINTENANCE, Severity.CRITICAL,
            f"{hit.display_name} is abandoned and receives no fixes.",
            "Replace it before migrating.",
        ))
    elif status is CompatibilityStatus.UNKNOWN:
        risks.append(Risk(
            RiskType.COMPATIBILITY, Severity.MEDIUM,
            f"No known GitLab mapping for {hit.display_name}.",
            "Research an equivalent or port the logic into job scripts.",
        ))
    return risks


def build_migration_path(hit: FeatureHit, entry: KnowledgeEntry) -> MigrationPath:
    complexity, effort = PATH_SHAPE[entry.status]
    steps = [f"Review how {hit.display_name} is used in the Jenkins pipeline"]

    if entry.target_equivalent:
        steps.append(f"Configure the GitLab equivalent: {entry.target_equivalent}")

    needs_replacement = entry.status.is_retired or entry.status is CompatibilityStatus.UNKNOWN
    if needs_replacement:
        if entry.alternatives:
            steps.append(f"Replace {hit.display_name} with {entry.alternatives[0]}")
        else:
            steps.append(f"Research a replacement for {hit.display_name}")

    steps.append("Validate the migrated job against the original build results")
    return MigrationPath(complexity=complexity, steps=tuple(steps), estimated_effort=effort)


def analyze(feature: Union[FeatureHit, str], knowledge: Optional[Mapping[str, KnowledgeEntry]] = None) -> Verdict:
    hit = _as_hit(feature)
    entry = assess_compatibility(hit, knowledge)
    risks = derive_risks(hit, entry)
    verdict = Verdict(
        feature=hit,
        compatibility=entry,
        risks=tuple(risks),
        migration_path=build_migration_path(hit, entry),
    )
    logger.debug(f"Verdict {hit.key}: {entry.status.value}, {len(risks)} risks")
    return verdict


def analyze_all(profile: ScanProfile, knowledge: Optional[Mapping[str, KnowledgeEntry]] = None) -> List[Verdict]:
    return [analyze(hit, knowledge) for hit in profile.feature_hits]


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def _priority(verdict: Verdict) -> Priority:
    status = verdict.compatibility.status
    worst = verdict.max_severity
    if status.is_retired or (worst is not None and worst.rank >= Severity.HIGH.rank):
        return Priority.HIGH
    if status is CompatibilityStatus.UNKNOWN or (worst is not None and worst is Severity.MEDIUM):
        return Priority.MEDIUM
    return Priority.LOW


def _recommendation_for(verdict: Verdict) -> Recommendation:
    hit = verdict.feature
    entry = verdict.compatibility
    priority = _priority(verdict)

    if entry.status.is_retired:
        replacement = entry.alternatives[0] if entry.alternatives else "a supported alternative"
        title = f"Replace {entry.status.value} feature {hit.display_name}"
        description = f"{hit.display_name} is {entry.status.value}; migrate to {replacement}. {entry.notes}".strip()
    elif entry.status is CompatibilityStatus.UNKNOWN:
        title = f"Research a GitLab mapping for {hit.display_name}"
        description = entry.notes
    elif verdict.risks:
        worst = max(verdict.risks, key=lambda r: r.severity.rank)
        title = f"Review {worst.type.value} risk in {hit.display_name}"
        description = f"{worst.description} {worst.mitigation}".strip()
    else:
        title = f"Map {hit.display_name} directly"
        description = f"Use {entry.target_equivalent}." if entry.target_equivalent else entry.notes

    return Recommendation(
        feature_key=hit.key,
        title=title,
        description=description,
        priority=priority,
        category=hit.category,
    )


_PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


def generate_smart_recommendations(
    features: Iterable[Union[FeatureHit, str, Verdict]],
    knowledge: Optional[Mapping[str, KnowledgeEntry]] = None,
) -> List[Recommendation]:
    """
    One recommendation per feature, high priority first.
    Order within a priority tier follows input order (sorted() is stable).
    """
    verdicts = [f if isinstance(f, Verdict) else analyze(f, knowledge) for f in features]
    recs = [_recommendation_for(v) for v in verdicts]
    return sorted(recs, key=lambda r: _PRIORITY_ORDER[r.priority])


def migration_score(verdicts: Sequence[Verdict]) -> int:
    if not verdicts:
        return 100
    total = sum(STATUS_SCORE[v.compatibility.status] for v in verdicts)
    return round(total / len(verdicts))


def summarize(verdicts: Sequence[Verdict]) -> ScanSummary:
    by_status: Dict[str, int] = {s.value: 0 for s in CompatibilityStatus}
    risks_by_type: Dict[str, int] = {t.value: 0 for t in RiskType}
    worst_rank = -1
    any_retired = False

    for verdict in verdicts:
        by_status[verdict.compatibility.status.value] += 1
        any_retired = any_retired or verdict.compatibility.status.is_retired
        for risk in verdict.risks:
            risks_by_type[risk.type.value] += 1
            worst_rank = max(worst_rank, risk.severity.rank)

    if not any_retired and worst_rank < Severity.MEDIUM.rank:
        readiness = Readiness.READY
    elif not any_retired and worst_rank == Severity.MEDIUM.rank:
        readiness = Readiness.NEEDS_PREPARATION
    else:
        readiness = Readiness.SIGNIFICANT_WORK_NEEDED

    return ScanSummary(
        total=len(verdicts),
        total_by_status=by_status,
        total_risks_by_type=risks_by_type,
        migration_readiness=readiness,
        migration_score=migration_score(verdicts),
    )


_CHECKLIST_SECTIONS = (
    (CompatibilityStatus.ABANDONED, "Replace abandoned features"),
    (CompatibilityStatus.DEPRECATED, "Replace deprecated features"),
    (CompatibilityStatus.UNKNOWN, "Research unmapped features"),
    (CompatibilityStatus.MAINTENANCE, "Review features in maintenance"),
    (CompatibilityStatus.ACTIVE, "Configure directly supported features"),
)


def render_checklist(verdicts: Sequence[Verdict], title: str = "Jenkins to GitLab Migration Checklist") -> str:
    """Markdown checklist grouped by compatibility status, most urgent first."""
    summary = summarize(verdicts)
    lines = [
        f"# {title}",
        "",
        f"- Features analysed: {summary.total}",
        f"- Migration readiness: **{summary.migration_readiness.value}**",
        f"- Migration score: {summary.migration_score}/100",
        "",
    ]

    for status, heading in _CHECKLIST_SECTIONS:
        group = [v for v in verdicts if v.compatibility.status is status]
        if not group:
            continue
        lines.append(f"## {heading}")
        lines.append("")
        for verdict in group:
            lines.append(f"- [ ] **{verdict.feature.display_name}** (`{verdict.feature.key}`)")
            for step in verdict.migration_path.steps:
                lines.append(f"  - [ ] {step}")
        lines.append("")

    lines.extend([
        "## Final verification",
        "",
        "- [ ] Recreate all Jenkins credentials as GitLab CI/CD variables",
        "- [ ] Lint the generated .gitlab-ci.yml",
        "- [ ] Run the pipeline on a feature branch",
        "",
    ])
    return "\n".join(lines)
