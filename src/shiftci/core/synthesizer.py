"""
ShiftCI CONFIGURATION SYNTHESIZER
---------------------------------
Builds a .gitlab-ci.yml from a scan profile and its verdicts.

Pipeline:
1. Choose the stage list from the (tier, kind) table
2. Register base jobs for the stages that exist
3. Apply the feature mutator table in fixed order
4. Apply directive mutators (parameters, env, matrix, parallel, retry, timeout)
5. Pull include templates and review notes from the verdicts
6. Validate the structure

Every mutator is a pure function: it receives a TargetDocument and returns
a new one. Output is deterministic apart from the generation timestamp
written by render().
"""

import re
import logging
from dataclasses import replace
from datetime import datetime, timezone
from io import StringIO
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq

from shiftci.models import (
    CompatibilityStatus,
    JobSpec,
    PipelineKind,
    ScanProfile,
    TargetDocument,
    Tier,
    ValidationResult,
    VariableSpec,
    Verdict,
)

logger = logging.getLogger("shiftci.synthesizer")

CANONICAL_STAGES = ("prepare", "build", "test", "quality", "package", "deploy", "cleanup")

_SIMPLE = ("build", "test")
_MEDIUM = ("build", "test", "quality", "deploy")
_MEDIUM_SCRIPTED = ("prepare", "build", "test", "quality", "deploy")
_COMPLEX = CANONICAL_STAGES

STAGE_TABLE: Mapping[Tuple[Tier, PipelineKind], Tuple[str, ...]] = {
    (Tier.SIMPLE, PipelineKind.DECLARATIVE): _SIMPLE,
    (Tier.SIMPLE, PipelineKind.SCRIPTED): _SIMPLE,
    (Tier.SIMPLE, PipelineKind.UNKNOWN): _SIMPLE,
    (Tier.MEDIUM, PipelineKind.DECLARATIVE): _MEDIUM,
    (Tier.MEDIUM, PipelineKind.SCRIPTED): _MEDIUM_SCRIPTED,
    (Tier.MEDIUM, PipelineKind.UNKNOWN): _MEDIUM,
    (Tier.COMPLEX, PipelineKind.DECLARATIVE): _COMPLEX,
    (Tier.COMPLEX, PipelineKind.SCRIPTED): _COMPLEX,
    (Tier.COMPLEX, PipelineKind.UNKNOWN): _COMPLEX,
}

BUILD_JOB = "build:app"
TEST_JOB = "test:unit"
DEPLOY_JOB = "deploy:staging"

DEFAULT_DEPLOY_BRANCHES = ("main", "develop")
MAX_GITLAB_RETRY = 2

# Variables that GitLab predefines without the CI_ prefix
PREDEFINED_VARIABLES = frozenset({"GITLAB_USER_LOGIN", "GITLAB_USER_EMAIL", "GITLAB_CI", "HOME", "PATH"})

Mutator = Callable[[TargetDocument, ScanProfile], TargetDocument]


def select_stages(tier: Tier, kind: PipelineKind) -> Tuple[str, ...]:
    chosen = set(STAGE_TABLE[(tier, kind)])
    return tuple(s for s in CANONICAL_STAGES if s in chosen)


# ---------------------------------------------------------------------------
# Document primitives (all return new documents)
# ---------------------------------------------------------------------------

def place_stage(doc: TargetDocument, preferred: str) -> str:
    """Preferred stage if present, else the nearest earlier chosen stage."""
    if preferred in doc.stages:
        return preferred
    index = CANONICAL_STAGES.index(preferred)
    for stage in reversed(CANONICAL_STAGES[:index]):
        if stage in doc.stages:
            return stage
    return doc.stages[0]


def set_default_image(doc: TargetDocument, image: str, services: Sequence[str] = (),
                      cache: Sequence[str] = ()) -> TargetDocument:
    """First image wins; later calls leave an existing default untouched."""
    if doc.default_image:
        return doc
    return replace(doc, default_image=image, default_services=tuple(services),
                   cache_paths=tuple(cache) or doc.cache_paths)


def add_variables(doc: TargetDocument, values: Iterable[Tuple[str, str]]) -> TargetDocument:
    merged = dict(doc.variables)
    for key, value in values:
        merged.setdefault(key, value)
    return replace(doc, variables=merged)


def require_variables(doc: TargetDocument, names: Iterable[str]) -> TargetDocument:
    required = list(doc.required_variables)
    for name in names:
        if name not in required:
            required.append(name)
    return replace(doc, required_variables=tuple(required))


def add_job(doc: TargetDocument, name: str, job: JobSpec) -> TargetDocument:
    if name in doc.jobs:
        return doc
    jobs = dict(doc.jobs)
    jobs[name] = job
    return replace(doc, jobs=jobs)


def update_job(doc: TargetDocument, name: str, **changes: Any) -> TargetDocument:
    if name not in doc.jobs:
        return doc
    jobs = dict(doc.jobs)
    jobs[name] = replace(jobs[name], **changes)
    return replace(doc, jobs=jobs)


def append_script(doc: TargetDocument, name: str, *lines: str) -> TargetDocument:
    if name not in doc.jobs:
        return doc
    return update_job(doc, name, script=doc.jobs[name].script + tuple(lines))


def merge_artifacts(doc: TargetDocument, name: str, extra: Dict[str, Any]) -> TargetDocument:
    if name not in doc.jobs:
        return doc
    artifacts = dict(doc.jobs[name].artifacts or {})
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(artifacts.get(key), dict):
            artifacts[key] = {**artifacts[key], **value}
        elif isinstance(value, list) and isinstance(artifacts.get(key), list):
            artifacts[key] = artifacts[key] + [v for v in value if v not in artifacts[key]]
        else:
            artifacts.setdefault(key, value)
    return update_job(doc, name, artifacts=artifacts)


def add_note(doc: TargetDocument, note: str) -> TargetDocument:
    if note in doc.notes:
        return doc
    return replace(doc, notes=doc.notes + (note,))


def add_include(doc: TargetDocument, template: str) -> TargetDocument:
    if template in doc.include:
        return doc
    return replace(doc, include=doc.include + (template,))


def _build_tool_claimed(doc: TargetDocument) -> bool:
    return doc.default_image is not None


# ---------------------------------------------------------------------------
# Feature mutators
# ---------------------------------------------------------------------------

def _maven(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    if _build_tool_claimed(doc):
        return doc
    doc = set_default_image(doc, "maven:3.8-openjdk-11", cache=[".m2/repository/"])
    doc = add_variables(doc, [("MAVEN_OPTS", "-Dmaven.repo.local=.m2/repository")])
    doc = append_script(doc, BUILD_JOB, "mvn -B clean package -DskipTests")
    return append_script(doc, TEST_JOB, "mvn -B test")


def _gradle(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    if _build_tool_claimed(doc):
        return doc
    doc = set_default_image(doc, "gradle:7-jdk11", cache=[".gradle/", "build/"])
    doc = append_script(doc, BUILD_JOB, "gradle build -x test")
    return append_script(doc, TEST_JOB, "gradle test")


def _nodejs(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    return set_default_image(doc, "node:16", cache=["node_modules/"])


def _npm(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    if doc.default_image and not doc.default_image.startswith("node"):
        return doc
    doc = set_default_image(doc, "node:16", cache=["node_modules/"])
    doc = append_script(doc, BUILD_JOB, "npm ci", "npm run build --if-present")
    return append_script(doc, TEST_JOB, "npm test")


def _ant(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    if _build_tool_claimed(doc):
        return doc
    doc = set_default_image(doc, "frekele/ant:1.10.3-jdk8")
    doc = append_script(doc, BUILD_JOB, "ant build")
    return append_script(doc, TEST_JOB, "ant test")


def _docker(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    doc = set_default_image(doc, "docker:24", services=["docker:24-dind"])
    doc = add_variables(doc, [("DOCKER_DRIVER", "overlay2"), ("DOCKER_TLS_CERTDIR", "/certs")])
    return add_job(doc, "package:docker", JobSpec(
        stage=place_stage(doc, "package"),
        image="docker:24",
        services=("docker:24-dind",),
        script=(
            'docker login -u "$CI_REGISTRY_USER" -p "$CI_REGISTRY_PASSWORD" "$CI_REGISTRY"',
            'docker build -t "$CI_REGISTRY_IMAGE:$CI_COMMIT_SHA" .',
            'docker push "$CI_REGISTRY_IMAGE:$CI_COMMIT_SHA"',
        ),
    ))


def _junit(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    return merge_artifacts(doc, TEST_JOB, {
        "when": "always",
        "reports": {"junit": ["**/target/surefire-reports/TEST-*.xml", "**/build/test-results/test/TEST-*.xml"]},
    })


def _sonarqube(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    command = (
        "mvn -B sonar:sonar -Dsonar.host.url=$SONAR_HOST_URL -Dsonar.login=$SONAR_TOKEN"
        if profile.has("maven")
        else "sonar-scanner -Dsonar.host.url=$SONAR_HOST_URL -Dsonar.login=$SONAR_TOKEN"
    )
    doc = require_variables(doc, ["SONAR_HOST_URL", "SONAR_TOKEN"])
    return add_job(doc, "quality:sonar", JobSpec(
        stage=place_stage(doc, "quality"),
        image=None if profile.has("maven") else "sonarsource/sonar-scanner-cli:latest",
        script=(command,),
        allow_failure=True,
    ))


def _kubernetes(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    doc = update_job(doc, DEPLOY_JOB, image="bitnami/kubectl:latest")
    return append_script(doc, DEPLOY_JOB, "kubectl apply -f k8s/staging/")


def _helm(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    if DEPLOY_JOB in doc.jobs and doc.jobs[DEPLOY_JOB].image is None:
        doc = update_job(doc, DEPLOY_JOB, image="alpine/helm:3")
    return append_script(doc, DEPLOY_JOB, "helm upgrade --install app-staging ./chart")


def _ansible(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    return add_job(doc, "deploy:ansible", JobSpec(
        stage=place_stage(doc, "deploy"),
        image="cytopia/ansible:latest",
        script=("ansible-playbook -i inventory site.yml",),
    ))


def _slack(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    doc = require_variables(doc, ["SLACK_WEBHOOK_URL"])
    return add_job(doc, "notify:slack", JobSpec(
        stage=place_stage(doc, "cleanup"),
        image="curlimages/curl:latest",
        script=(
            "curl -X POST -H 'Content-type: application/json' "
            "--data \"{\\\"text\\\": \\\"Pipeline $CI_PIPELINE_ID failed on $CI_COMMIT_REF_NAME\\\"}\" "
            "\"$SLACK_WEBHOOK_URL\"",
        ),
        when="on_failure",
    ))


def _archive_artifacts(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    discard = dict(profile.details.build_discarder)
    days = discard.get("artifact_days_to_keep") or discard.get("days_to_keep")
    return merge_artifacts(doc, BUILD_JOB, {
        "paths": ["target/*.jar", "build/libs/", "dist/"],
        "expire_in": f"{days} days" if days else "1 week",
    })


def _publish_html(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    return merge_artifacts(doc, TEST_JOB, {"expose_as": "HTML report", "paths": ["reports/"]})


def _input(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    if "deploy" not in doc.stages:
        return doc
    return add_job(doc, "deploy:production", JobSpec(
        stage="deploy",
        script=('echo "Deploying to production..."',),
        only=("main",),
        when="manual",
    ))


def _parallel(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    for name in profile.details.parallel_stages:
        slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "branch"
        doc = add_job(doc, f"parallel:{slug}", JobSpec(
            stage=place_stage(doc, "test"),
            script=(f'echo "Running {name}"',),
        ))
    return doc


def _matrix(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    axes = profile.details.matrix_axes
    if not axes:
        return doc
    return add_job(doc, "test:matrix", JobSpec(
        stage=place_stage(doc, "test"),
        parallel_matrix=axes,
        script=('echo "Running matrix combination ' + " ".join(f"{n}=${n}" for n, _ in axes) + '"',),
    ))


FEATURE_MUTATORS: Tuple[Tuple[str, Mutator], ...] = (
    ("maven", _maven),
    ("gradle", _gradle),
    ("nodejs", _nodejs),
    ("npm", _npm),
    ("ant", _ant),
    ("docker", _docker),
    ("junit", _junit),
    ("sonarqube", _sonarqube),
    ("kubernetes", _kubernetes),
    ("helm", _helm),
    ("ansible", _ansible),
    ("slack", _slack),
    ("archive-artifacts", _archive_artifacts),
    ("publish-html", _publish_html),
    ("input", _input),
    ("parallel", _parallel),
    ("matrix", _matrix),
)


# ---------------------------------------------------------------------------
# Directive mutators (always applied, driven by profile.details)
# ---------------------------------------------------------------------------

def _parameters(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    params = profile.details.parameters
    if not params:
        return doc
    values = []
    secrets = []
    for p in params:
        if p.type == "password":
            secrets.append(p.name)
        elif p.type == "boolean":
            values.append((p.name, (p.default or "false").lower()))
        else:
            values.append((p.name, p.default or ""))
    doc = add_variables(doc, values)
    doc = require_variables(doc, secrets)
    return replace(doc, workflow_rules=(
        {"if": '$CI_PIPELINE_SOURCE == "web"'},
        {"if": '$CI_PIPELINE_SOURCE == "merge_request_event"'},
        {"if": "$CI_COMMIT_BRANCH"},
    ))


def _environment(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    return add_variables(doc, profile.details.environment)


def _deploy_branches(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    branches = tuple(v for k, v in profile.details.when_conditions if k == "branch")
    return update_job(doc, DEPLOY_JOB, only=branches or DEFAULT_DEPLOY_BRANCHES)


def _retry_timeout(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    details = profile.details
    if details.retry is None and details.timeout_minutes is None:
        return doc
    changes: Dict[str, Any] = {}
    if details.retry is not None:
        changes["retry"] = min(details.retry, MAX_GITLAB_RETRY)
    if details.timeout_minutes is not None:
        changes["timeout"] = f"{details.timeout_minutes} minutes"
    for name in list(doc.jobs):
        doc = update_job(doc, name, **changes)
    return doc


def _fill_placeholders(doc: TargetDocument, profile: ScanProfile) -> TargetDocument:
    placeholders = {
        BUILD_JOB: 'echo "Add your build commands here"',
        TEST_JOB: 'echo "Add your test commands here"',
        DEPLOY_JOB: 'echo "Add your deployment commands here"',
    }
    for name, line in placeholders.items():
        if name in doc.jobs and len(doc.jobs[name].script) == 1:
            doc = append_script(doc, name, line)
    return doc


DIRECTIVE_MUTATORS: Tuple[Mutator, ...] = (
    _parameters,
    _environment,
    _deploy_branches,
    _fill_placeholders,
    _retry_timeout,
)


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------

def base_document(profile: ScanProfile) -> TargetDocument:
    stages = select_stages(profile.complexity_tier, profile.pipeline_kind)
    jobs: Dict[str, JobSpec] = {
        BUILD_JOB: JobSpec(stage="build", script=('echo "Building application..."',)),
    }
    if "test" in stages:
        jobs[TEST_JOB] = JobSpec(stage="test", script=('echo "Running tests..."',))
    if "deploy" in stages:
        jobs[DEPLOY_JOB] = JobSpec(stage="deploy", script=('echo "Deploying to staging..."',))
    return TargetDocument(stages=stages, jobs=jobs)


def _apply_verdicts(doc: TargetDocument, verdicts: Sequence[Verdict]) -> TargetDocument:
    for verdict in verdicts:
        entry = verdict.compatibility
        if entry.include:
            doc = add_include(doc, entry.include)
        if entry.status.is_retired or entry.status is CompatibilityStatus.UNKNOWN:
            hint = f" (consider {entry.alternatives[0]})" if entry.alternatives else ""
            doc = add_note(doc, f"MANUAL REVIEW: {verdict.feature.display_name} is {entry.status.value}{hint}")
    return doc


def synthesize(
    profile: ScanProfile,
    verdicts: Sequence[Verdict],
    variables: Optional[Sequence[VariableSpec]] = None,
) -> TargetDocument:
    """
    Deterministically builds the target document. Identical inputs always
    yield equal documents.
    """
    doc = base_document(profile)

    for key, mutator in FEATURE_MUTATORS:
        if profile.has(key):
            doc = mutator(doc, profile)
            logger.debug(f"Applied mutator '{key}'")

    for mutator in DIRECTIVE_MUTATORS:
        doc = mutator(doc, profile)

    doc = _apply_verdicts(doc, verdicts)
    for warning in profile.warnings:
        doc = add_note(doc, warning)

    if variables:
        doc = require_variables(doc, [spec.proposed_key for spec in variables])

    doc = replace(doc, validation=validate_document(doc))
    logger.info(
        f"Synthesized {len(doc.jobs)} jobs across {len(doc.stages)} stages "
        f"(valid={doc.validation.valid})"
    )
    return doc


_VAR_REF = re.compile(r"\$\{?([A-Za-z_][A-Za-z0-9_]*)\}?")


def validate_document(doc: TargetDocument) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    if not doc.stages:
        errors.append("No stages defined")
    if len(set(doc.stages)) != len(doc.stages):
        errors.append("Duplicate stage names")
    if not doc.jobs:
        errors.append("No jobs defined")

    defined = set(doc.variables) | set(doc.required_variables) | PREDEFINED_VARIABLES
    for name, job in doc.jobs.items():
        if job.stage not in doc.stages:
            errors.append(f"Job '{name}' references undefined stage '{job.stage}'")
        for line in job.script:
            for ref in _VAR_REF.findall(line):
                if ref.startswith("CI_") or ref in defined:
                    continue
                # Matrix axes are defined per job
                if any(ref == axis for axis, _ in job.parallel_matrix):
                    continue
                warnings.append(f"Job '{name}' uses undefined variable ${ref}")

    return ValidationResult(valid=not errors, errors=tuple(errors), warnings=tuple(warnings))


GENERATED_ON_PREFIX = "# Generated on: "


def _commented(value: Any) -> Any:
    """Converts plain containers to ruamel round-trip types so key order is kept."""
    if isinstance(value, dict):
        return CommentedMap((k, _commented(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return CommentedSeq(_commented(v) for v in value)
    return value


def render(doc: TargetDocument, generated_at: Optional[datetime] = None, source_name: str = "Jenkinsfile") -> str:
    """
    Serializes the document in a single ruamel.yaml dump. The
    '# Generated on:' header line is the only non-deterministic output.
    """
    stamp = (generated_at or datetime.now(timezone.utc)).isoformat(timespec="seconds")
    header = [
        f"# GitLab CI configuration converted from {source_name}",
        f"{GENERATED_ON_PREFIX}{stamp}",
    ]
    if doc.required_variables:
        header.append("#")
        header.append("# Required CI/CD variables (Settings > CI/CD > Variables):")
        header.extend(f"#   - {name}" for name in doc.required_variables)
    if doc.notes:
        header.append("#")
        header.extend(f"# {note}" for note in doc.notes)

    yaml = YAML()
    yaml.indent(mapping=2, sequence=4, offset=2)
    yaml.width = 4096
    output = StringIO()
    yaml.dump(_commented(doc.to_dict()), output)
    return "\n".join(header) + "\n\n" + output.getvalue()


def strip_generated_on(text: str) -> str:
    """Drops the timestamp line so two renders can be compared."""
    return "\n".join(line for line in text.split("\n") if not line.startswith(GENERATED_ON_PREFIX))
