"""
ShiftCI SECRET MAPPER
---------------------
Converts Jenkins credential hits into GitLab CI/CD variable specifications.

Policy:
- Keys are sanitized to [A-Z0-9_] and made unique with _2, _3, ... suffixes
  in first-seen order
- File credentials become file-type variables (never masked)
- Secret-valued kinds are masked
- Username/password credentials become KEY_USER + KEY_PASS (password masked)
- Ids or contexts that mention a production token are protected

Also renders an .env template and a bash provisioning script that creates
the variables through the GitLab API.
"""

import re
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from shiftci.models import CredentialHit, CredentialKind, ValidationResult, VariableSpec, VariableType

logger = logging.getLogger("shiftci.secrets")

DEFAULT_PRODUCTION_TOKENS = ("prod", "production", "prd", "live", "release", "deploy")

SECRET_KINDS = frozenset({CredentialKind.SECRET_TEXT, CredentialKind.SSH_KEY, CredentialKind.CERTIFICATE})

KIND_LABELS = {
    CredentialKind.USERNAME_PASSWORD: "Username/password",
    CredentialKind.SECRET_TEXT: "Secret text",
    CredentialKind.FILE: "Secret file",
    CredentialKind.SSH_KEY: "SSH private key",
    CredentialKind.CERTIFICATE: "Certificate",
    CredentialKind.UNKNOWN: "Generic",
}

KEY_FORMAT = re.compile(r"^[A-Za-z0-9_]+$")
MAX_KEY_LENGTH = 100
FALLBACK_KEY = "SECRET"

_SECRET_HINT = re.compile(r"TOKEN|KEY|SECRET|PASS|PWD", re.IGNORECASE)

# Username/password credentials are split into these two variables
PAIR_PARTS = (("USER", "Username"), ("PASS", "Password"))


def sanitize_key(credential_id: str) -> str:
    """
    Uppercases the id, replaces every run of characters outside [A-Z0-9_]
    with '_' and collapses repeated underscores.
    """
    key = re.sub(r"[^A-Z0-9_]+", "_", credential_id.upper())
    key = re.sub(r"_+", "_", key).strip("_")
    if not key:
        return FALLBACK_KEY
    if key[0].isdigit():
        key = f"VAR_{key}"
    if key.startswith("CI_"):
        # CI_ is reserved for predefined GitLab variables
        key = f"APP_{key}"
    return key


def _tokens(text: str) -> List[str]:
    return [t for t in re.split(r"[^a-z0-9]+", text.lower()) if t]


def is_production(hit: CredentialHit, production_tokens: Sequence[str] = DEFAULT_PRODUCTION_TOKENS) -> bool:
    wanted = {t.lower() for t in production_tokens}
    return any(tok in wanted for tok in _tokens(hit.id) + _tokens(hit.context))


def _is_masked(hit: CredentialHit) -> bool:
    if hit.kind is CredentialKind.FILE:
        return False
    if hit.kind in SECRET_KINDS:
        return True
    return bool(_SECRET_HINT.search(hit.id))


def _join(stem: str, part: Optional[str]) -> str:
    return f"{stem}_{part}" if part else stem


def _free_stem(base: str, used: set, parts: Sequence[Optional[str]]) -> str:
    """First of base, base_2, base_3, ... whose keys for every part are unused."""
    stem = base
    suffix = 2
    while any(_join(stem, part) in used for part in parts):
        stem = f"{base}_{suffix}"
        suffix += 1
    return stem


def map_to_variables(
    hits: Iterable[CredentialHit],
    environment_scope: str = "*",
    production_tokens: Sequence[str] = DEFAULT_PRODUCTION_TOKENS,
) -> List[VariableSpec]:
    """
    VariableSpecs in hit order. Never fails on collisions: the second
    API_TOKEN becomes API_TOKEN_2, the third API_TOKEN_3, ...

    A username/password hit yields two specs, KEY_USER and KEY_PASS, that
    share one stem; the password half is always masked.
    """
    specs: List[VariableSpec] = []
    used: set = set()
    occurrences: Dict[str, int] = {}

    for hit in hits:
        occurrences[hit.id] = occurrences.get(hit.id, 0) + 1
        label = f"{KIND_LABELS[hit.kind]} credential migrated from Jenkins id '{hit.id}' (line {hit.line})"
        common = dict(
            original_id=hit.id,
            occurrence=occurrences[hit.id],
            protected=is_production(hit, production_tokens),
            environment_scope=environment_scope,
        )

        if hit.kind is CredentialKind.USERNAME_PASSWORD:
            stem = _free_stem(sanitize_key(hit.id), used, [part for part, _ in PAIR_PARTS])
            for part, role in PAIR_PARTS:
                key = _join(stem, part)
                used.add(key)
                specs.append(VariableSpec(
                    proposed_key=key,
                    type=VariableType.VARIABLE,
                    masked=part == "PASS" or _is_masked(hit),
                    description=f"{role} of {label}",
                    part=part,
                    **common,
                ))
            continue

        key = _free_stem(sanitize_key(hit.id), used, [None])
        used.add(key)
        specs.append(VariableSpec(
            proposed_key=key,
            type=VariableType.FILE if hit.kind is CredentialKind.FILE else VariableType.VARIABLE,
            masked=_is_masked(hit),
            description=label,
            **common,
        ))

    logger.info(f"Mapped {len(specs)} variables from credential references")
    return specs


def key_mapping(specs: Iterable[VariableSpec]) -> Dict[Tuple[str, int], str]:
    """
    (original id, occurrence index) -> proposed key. Both halves of a
    username/password pair map to their shared stem.
    """
    mapping: Dict[Tuple[str, int], str] = {}
    for s in specs:
        key = s.proposed_key[:-(len(s.part) + 1)] if s.part else s.proposed_key
        mapping[(s.original_id, s.occurrence)] = key
    return mapping


# ---------------------------------------------------------------------------
# Derived artifacts
# ---------------------------------------------------------------------------

def _placeholder(spec: VariableSpec) -> str:
    return "<BASE64_FILE_CONTENT>" if spec.type is VariableType.FILE else "<ADD_VALUE>"


def render_env_file(specs: Sequence[VariableSpec]) -> str:
    lines = [
        "# GitLab CI/CD variables migrated from Jenkins credentials",
        "# Fill in the values, then create them in Settings > CI/CD > Variables",
        "",
    ]
    for spec in specs:
        flags = [spec.type.value]
        if spec.masked:
            flags.append("masked")
        if spec.protected:
            flags.append("protected")
        lines.append(f"# {spec.description} [{', '.join(flags)}]")
        lines.append(f"{spec.proposed_key}={_placeholder(spec)}")
    return "\n".join(lines) + "\n"


def _shell_quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$").replace("`", "\\`")


def render_provisioning_script(
    specs: Sequence[VariableSpec],
    project_id: Optional[str] = None,
    dry_run: bool = False,
    batch_size: int = 10,
    api_url: str = "https://gitlab.com/api/v4",
) -> str:
    """Bash script that creates every variable through the GitLab variables API."""
    batch_size = max(1, batch_size)
    lines = [
        "#!/bin/bash",
        "# GitLab CI/CD variable provisioning script",
        "# Generated from Jenkins credential migration",
        "",
        "set -euo pipefail",
        "",
        f"PROJECT_ID=${{CI_PROJECT_ID:-{project_id or 'YOUR_PROJECT_ID'}}}",
        "GITLAB_TOKEN=${GITLAB_TOKEN:-}",
        f"API_URL=${{CI_API_V4_URL:-{api_url}}}",
        "",
        'if [[ -z "$GITLAB_TOKEN" ]]; then',
        '  echo "Error: GITLAB_TOKEN environment variable is required"',
        "  exit 1",
        "fi",
        "",
        "create_variable() {",
        '  local key="$1"',
        '  local value="$2"',
        '  local variable_type="$3"',
        '  local masked="$4"',
        '  local protected="$5"',
        '  local scope="$6"',
        '  local description="$7"',
        "",
    ]
    if dry_run:
        lines += ['  echo "[DRY RUN] Would create: $key"', "  return 0"]
    else:
        lines += [
            '  echo "Creating variable: $key"',
            '  status=$(curl -s -w "%{http_code}" -o /tmp/gitlab_var_response \\',
            '    --header "PRIVATE-TOKEN: $GITLAB_TOKEN" \\',
            "    --request POST \\",
            '    --data-urlencode "key=$key" \\',
            '    --data-urlencode "value=$value" \\',
            '    --data "variable_type=$variable_type" \\',
            '    --data "masked=$masked" \\',
            '    --data "protected=$protected" \\',
            '    --data-urlencode "environment_scope=$scope" \\',
            '    --data-urlencode "description=$description" \\',
            '    "$API_URL/projects/$PROJECT_ID/variables")',
            "",
            '  if [[ "$status" =~ ^2[0-9][0-9]$ ]]; then',
            '    echo "Created: $key"',
            "  else",
            '    echo "Failed: $key (HTTP $status)"',
            "    cat /tmp/gitlab_var_response",
            "    echo",
            "  fi",
        ]
    lines += ["}", "", 'echo "Provisioning variables for project $PROJECT_ID"', ""]

    for start in range(0, len(specs), batch_size):
        batch = specs[start:start + batch_size]
        lines.append(f"# Batch {start // batch_size + 1}")
        for spec in batch:
            var_type = "file" if spec.type is VariableType.FILE else "env_var"
            lines.append(
                f'create_variable "{spec.proposed_key}" "{_placeholder(spec)}" "{var_type}" '
                f'"{str(spec.masked).lower()}" "{str(spec.protected).lower()}" '
                f'"{_shell_quote(spec.environment_scope)}" "{_shell_quote(spec.description)}"'
            )
        if start + batch_size < len(specs):
            lines.append("sleep 1")
        lines.append("")

    lines.append('echo "Done. Verify the variables under Settings > CI/CD > Variables."')
    return "\n".join(lines) + "\n"


def validate(specs: Sequence[VariableSpec]) -> ValidationResult:
    errors: List[str] = []
    warnings: List[str] = []
    seen: set = set()

    for index, spec in enumerate(specs, start=1):
        key = spec.proposed_key
        label = key or f"#{index}"
        if not key:
            errors.append(f"Variable {label} (from '{spec.original_id}') has an empty key")
            continue
        if not KEY_FORMAT.match(key):
            errors.append(f"Variable {label} contains characters outside [A-Za-z0-9_]")
        if key in seen:
            errors.append(f"Duplicate variable key: {key}")
        seen.add(key)

        if not spec.description:
            warnings.append(f"Variable {label} has no description")
        if key.startswith("CI_"):
            warnings.append(f"Variable {label} uses the reserved CI_ prefix")
        if spec.masked and spec.type is VariableType.FILE:
            warnings.append(f"Variable {label} is a file variable and cannot be masked")
        if len(key) > MAX_KEY_LENGTH:
            warnings.append(f"Variable {label} key is longer than {MAX_KEY_LENGTH} characters")

    return ValidationResult(valid=not errors, errors=tuple(errors), warnings=tuple(warnings))
