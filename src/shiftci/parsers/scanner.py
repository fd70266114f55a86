"""
ShiftCI FEATURE SCANNER
-----------------------
Pattern-matches raw Jenkinsfile text and produces a ScanProfile:
- Pipeline shape (declarative / scripted / unknown)
- Detected feature keys, in pattern-table order
- Complexity tier (simple / medium / complex)
- Warnings for scripted pipelines and feature-heavy pipelines

The scanner never parses Groovy. Each pattern is tested once against the
whole text, so a feature either appears once in the profile or not at all.
"""

import re
import logging
from dataclasses import dataclass
from typing import List, Pattern, Tuple

from shiftci.models import FeatureHit, PipelineKind, ScanProfile, Tier
from shiftci.parsers.pipeline import extract_details

logger = logging.getLogger("shiftci.scanner")

SCRIPTED_PIPELINE_WARNING = (
    "Scripted pipeline detected: Groovy logic cannot be converted automatically and needs manual review."
)
MANY_FEATURES_WARNING = (
    "More than 15 features detected: consider splitting the migration into smaller pipelines."
)

DECLARATIVE_MARKER = re.compile(r"\bpipeline\s*\{")
SCRIPTED_MARKER = re.compile(r"\bnode\s*(\([^)]*\))?\s*\{")


@dataclass(frozen=True)
class FeaturePattern:
    key: str
    name: str
    regex: Pattern
    category: str


def _p(key: str, name: str, pattern: str, category: str) -> FeaturePattern:
    return FeaturePattern(key, name, re.compile(pattern, re.IGNORECASE), category)


# Order is significant: hits are reported in this order.
FEATURE_PATTERNS: Tuple[FeaturePattern, ...] = (
    # Build tools
    _p("maven", "Maven", r"withMaven|\bmvnw?\s", "build"),
    _p("gradle", "Gradle", r"\bgradlew?\b|withGradle", "build"),
    _p("npm", "NPM", r"\bnpm\s+(install|ci|run|test)", "build"),
    _p("nodejs", "Node.js", r"nodejs\s*\(|\bnode\s+[\w./-]", "build"),
    _p("ant", "Ant", r"withAnt|\bant\s+[\w-]", "build"),

    # Testing & coverage
    _p("junit", "JUnit", r"\bjunit\b", "test"),
    _p("jacoco", "JaCoCo", r"\bjacoco\b", "test"),
    _p("cobertura", "Cobertura", r"\bcobertura\b", "test"),

    # Quality
    _p("sonarqube", "SonarQube", r"withSonarQubeEnv|sonar:|sonar-scanner", "quality"),
    _p("findbugs", "FindBugs", r"\bfindbugs\b", "quality"),

    # Security
    _p("credentials", "Credentials", r"withCredentials|credentials\s*\(", "security"),
    _p("vault", "Vault", r"withVault", "security"),
    _p("trivy", "Trivy", r"\btrivy\b", "security"),
    _p("dependency-check", "OWASP Dependency-Check", r"dependencyCheck|dependency-check", "security"),
    _p("ssh-agent", "SSH Agent", r"\bsshagent\s*\(", "security"),

    # Deployment
    _p("docker", "Docker", r"docker\.|\bdocker\s+(build|push|run|login)", "deploy"),
    _p("kubernetes", "Kubernetes", r"kubectl|kubernetes", "deploy"),
    _p("helm", "Helm", r"\bhelm\s+(install|upgrade|template|package)", "deploy"),
    _p("ansible", "Ansible", r"ansiblePlaybook|ansible-playbook", "deploy"),

    # Source control
    _p("git", "Git", r"checkout\s+scm|\bgit\s*\(|\bgit\s+(url|branch|credentialsId)\s*:", "scm"),
    _p("shared-library", "Shared Library", r"@Library\s*\(", "scm"),

    # Notifications
    _p("slack", "Slack", r"slackSend", "notification"),
    _p("email", "Email", r"emailext|\bmail\s+(to|subject)\s*:", "notification"),
    _p("hipchat", "HipChat", r"hipchatSend", "notification"),

    # Artifacts & workspace
    _p("archive-artifacts", "Archive Artifacts", r"archiveArtifacts", "other"),
    _p("publish-html", "HTML Publisher", r"publishHTML", "other"),
    _p("stash", "Stash/Unstash", r"\b(un)?stash\s*(\(|name\s*:|['\"])", "other"),
    _p("ws-cleanup", "Workspace Cleanup", r"\bcleanWs\b|\bdeleteDir\s*\(", "other"),

    # Pipeline directives
    _p("parallel", "Parallel", r"\bparallel\s*[\{\(]", "other"),
    _p("matrix", "Matrix", r"\bmatrix\s*\{", "other"),
    _p("retry", "Retry", r"\bretry\s*\(", "other"),
    _p("timeout", "Timeout", r"\btimeout\s*\(", "other"),
    _p("parameters", "Parameters", r"\bparameters\s*\{", "other"),
    _p("input", "Manual Input", r"\binput\s*(\(|message\s*:)", "other"),
    _p("buildDiscarder", "Build Discarder", r"buildDiscarder", "other"),
)


def detect_kind(text: str) -> PipelineKind:
    """Scripted markers dominate declarative ones when both are present."""
    if SCRIPTED_MARKER.search(text):
        return PipelineKind.SCRIPTED
    if DECLARATIVE_MARKER.search(text):
        return PipelineKind.DECLARATIVE
    return PipelineKind.UNKNOWN


def detect_features(text: str) -> Tuple[FeatureHit, ...]:
    hits: List[FeatureHit] = []
    seen = set()
    for pattern in FEATURE_PATTERNS:
        if pattern.key in seen:
            continue
        if pattern.regex.search(text):
            seen.add(pattern.key)
            hits.append(FeatureHit(pattern.key, pattern.name, pattern.category))
    return tuple(hits)


def derive_tier(kind: PipelineKind, feature_count: int, line_count: int) -> Tier:
    """
    Monotonic tier derivation. Rules are applied in order and can only
    raise the tier, never lower it.
    """
    scripted = kind is PipelineKind.SCRIPTED
    tier = Tier.SIMPLE

    if scripted:
        tier = tier.at_least(Tier.MEDIUM)

    if feature_count > 10 or (scripted and feature_count > 5):
        tier = tier.at_least(Tier.COMPLEX)
    elif feature_count > 5:
        tier = tier.at_least(Tier.MEDIUM)

    if line_count > 100 and tier is Tier.SIMPLE:
        tier = Tier.MEDIUM

    if line_count > 200 or (line_count > 100 and feature_count > 8):
        tier = tier.at_least(Tier.COMPLEX)

    return tier


def scan(text: str) -> ScanProfile:
    """
    Builds the structural profile of a pipeline definition.
    Total over all strings: empty or garbage input yields a minimal profile.
    """
    kind = detect_kind(text)
    hits = detect_features(text)
    line_count = len(text.split("\n"))
    tier = derive_tier(kind, len(hits), line_count)

    warnings = []
    if kind is PipelineKind.SCRIPTED:
        warnings.append(SCRIPTED_PIPELINE_WARNING)
    if len(hits) > 15:
        warnings.append(MANY_FEATURES_WARNING)

    logger.info(f"Scanned {line_count} lines: {kind.value}, {len(hits)} features, tier={tier.value}")
    return ScanProfile(
        pipeline_kind=kind,
        feature_hits=hits,
        line_count=line_count,
        complexity_tier=tier,
        warnings=tuple(warnings),
        details=extract_details(text),
    )
