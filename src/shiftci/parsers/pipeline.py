"""
ShiftCI PIPELINE DIRECTIVE EXTRACTOR
------------------------------------
Recovers structured Jenkins directives that the feature scan only flags:
- parameters { string / booleanParam / choice / text / password }
- environment { KEY = 'value' }
- matrix { axes { axis { name ... values ... } } }
- parallel stages, timeout(), retry(), post { ... }, buildDiscarder, when { ... }

Everything is regex + brace matching on raw text. No Groovy evaluation.
Malformed input yields empty fields, never an exception.
"""

import re
import logging
from typing import Dict, List, Optional, Tuple

from shiftci.models import Parameter, PipelineDetails

logger = logging.getLogger("shiftci.pipeline")

PARAM_TYPES = {
    "string": "string",
    "booleanParam": "boolean",
    "choice": "choice",
    "text": "text",
    "password": "password",
}

POST_CONDITIONS = ("always", "success", "failure", "unstable", "changed", "fixed", "aborted", "cleanup")

TIMEOUT_UNITS = {"SECONDS": 1 / 60, "MINUTES": 1, "HOURS": 60, "DAYS": 1440}

DISCARDER_FIELDS = {
    "daysToKeepStr": "days_to_keep",
    "numToKeepStr": "num_to_keep",
    "artifactDaysToKeepStr": "artifact_days_to_keep",
    "artifactNumToKeepStr": "artifact_num_to_keep",
}

_PARAM_CALL = re.compile(r"\b(string|booleanParam|choice|text|password)\s*\(([^()]*)\)")
_NAMED_ARG = re.compile(
    r"\b(\w+)\s*:\s*(?:'([^']*)'|\"([^\"]*)\"|\[([^\]]*)\]|(true|false|\d+))"
)
_QUOTED = re.compile(r"['\"]([^'\"]+)['\"]")
_ENV_ASSIGN = re.compile(r"^[ \t]*(\w+)[ \t]*=[ \t]*['\"]([^'\"]*)['\"]", re.MULTILINE)


# ---------------------------------------------------------------------------
# Brace helpers
# ---------------------------------------------------------------------------

def brace_index(text: str) -> Dict[int, int]:
    """
    Maps the offset of every '{' to the offset of its matching '}'.
    Single stack pass; unmatched braces are left out.
    """
    pairs: Dict[int, int] = {}
    stack: List[int] = []
    for i, ch in enumerate(text):
        if ch == "{":
            stack.append(i)
        elif ch == "}" and stack:
            pairs[stack.pop()] = i
    return pairs


def block_body(text: str, open_index: int, pairs: Optional[Dict[int, int]] = None) -> Optional[str]:
    """
    Returns the content between the '{' at open_index and its matching '}'.
    Returns None when braces are unbalanced.
    """
    if pairs is None:
        pairs = brace_index(text)
    close = pairs.get(open_index)
    if close is None:
        return None
    return text[open_index + 1:close]


def find_blocks(text: str, header: str, pairs: Optional[Dict[int, int]] = None) -> List[str]:
    """
    Finds every outermost `<header> {` block and returns the inner bodies in order.
    A block nested inside an earlier match is already part of that body and is skipped.
    """
    if pairs is None:
        pairs = brace_index(text)
    bodies = []
    covered_until = -1
    for match in re.finditer(header + r"\s*\{", text):
        open_index = match.end() - 1
        close = pairs.get(open_index)
        if close is None or open_index < covered_until:
            continue
        bodies.append(text[open_index + 1:close])
        covered_until = close
    return bodies


def _first_block(text: str, header: str) -> Optional[str]:
    pairs = None
    for match in re.finditer(header + r"\s*\{", text):
        if pairs is None:
            pairs = brace_index(text)
        body = block_body(text, match.end() - 1, pairs)
        if body is not None:
            return body
    return None


# ---------------------------------------------------------------------------
# Individual extractors
# ---------------------------------------------------------------------------

def _named_args(arg_text: str) -> Dict[str, str]:
    args = {}
    for m in _NAMED_ARG.finditer(arg_text):
        name = m.group(1)
        if m.group(4) is not None:
            args[name] = m.group(4)
        else:
            args[name] = next(g for g in (m.group(2), m.group(3), m.group(5)) if g is not None)
    return args


def extract_parameters(text: str) -> Tuple[Parameter, ...]:
    body = _first_block(text, r"\bparameters")
    if body is None:
        return ()

    params = []
    for m in _PARAM_CALL.finditer(body):
        args = _named_args(m.group(2))
        if "name" not in args:
            continue
        ptype = PARAM_TYPES[m.group(1)]
        choices: Tuple[str, ...] = ()
        default = args.get("defaultValue")
        if ptype == "choice":
            choices = tuple(_QUOTED.findall(args.get("choices", "")))
            if default is None and choices:
                default = choices[0]
        params.append(Parameter(
            name=args["name"],
            type=ptype,
            default=default,
            description=args.get("description"),
            choices=choices,
        ))
    return tuple(params)


def extract_environment(text: str) -> Tuple[Tuple[str, str], ...]:
    body = _first_block(text, r"\benvironment")
    if body is None:
        return ()
    return tuple((k, v) for k, v in _ENV_ASSIGN.findall(body))


def extract_matrix_axes(text: str) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
    matrix = _first_block(text, r"\bmatrix")
    if matrix is None:
        return ()
    axes_body = _first_block(matrix, r"\baxes")
    if axes_body is None:
        return ()

    axes = []
    for axis in find_blocks(axes_body, r"\baxis"):
        name = re.search(r"name\s+['\"](\w+)['\"]", axis)
        values = re.search(r"values\s+([^\n}]+)", axis)
        if name and values:
            axes.append((name.group(1), tuple(_QUOTED.findall(values.group(1)))))
    return tuple(axes)


def extract_parallel_stages(text: str) -> Tuple[str, ...]:
    names: List[str] = []
    for body in find_blocks(text, r"\bparallel"):
        names.extend(re.findall(r"stage\s*\(\s*['\"]([^'\"]+)['\"]", body))

    # Scripted form: parallel('a': { ... }, 'b': { ... }) or parallel a: {...}
    for m in re.finditer(r"\bparallel\s*\(", text):
        names.extend(re.findall(r"['\"]([^'\"]+)['\"]\s*:\s*\{", text[m.end():m.end() + 2000]))

    seen = set()
    ordered = []
    for name in names:
        if name not in seen:
            seen.add(name)
            ordered.append(name)
    return tuple(ordered)


def extract_timeout(text: str) -> Optional[int]:
    m = re.search(r"\btimeout\s*\(\s*time:\s*(\d+)(?:\s*,\s*unit:\s*['\"](\w+)['\"])?", text)
    if not m:
        return None
    unit = (m.group(2) or "MINUTES").upper()
    factor = TIMEOUT_UNITS.get(unit, 1)
    return max(1, int(round(int(m.group(1)) * factor)))


def extract_retry(text: str) -> Optional[int]:
    m = re.search(r"\bretry\s*\(\s*(?:count:\s*)?(\d+)\s*\)", text)
    return int(m.group(1)) if m else None


def extract_post_actions(text: str) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
    post = _first_block(text, r"\bpost")
    if post is None:
        return ()

    actions = []
    for condition in POST_CONDITIONS:
        body = _first_block(post, r"\b" + condition)
        if body is None:
            continue
        steps = tuple(
            line.strip() for line in body.splitlines()
            if line.strip() and not line.strip().startswith("//")
        )
        actions.append((condition, steps))
    return tuple(actions)


def extract_build_discarder(text: str) -> Tuple[Tuple[str, int], ...]:
    m = re.search(r"buildDiscarder\s*\(\s*logRotator\s*\(([^)]*)\)", text)
    if not m:
        return ()
    fields = []
    for source, target in DISCARDER_FIELDS.items():
        value = re.search(source + r"\s*:\s*['\"]?(\d+)['\"]?", m.group(1))
        if value:
            fields.append((target, int(value.group(1))))
    return tuple(fields)


def extract_when_conditions(text: str) -> Tuple[Tuple[str, str], ...]:
    conditions = []
    for body in find_blocks(text, r"\bwhen"):
        for branch in re.findall(r"branch\s+['\"]([^'\"]+)['\"]", body):
            conditions.append(("branch", branch))
        for expr in find_blocks(body, r"\bexpression"):
            conditions.append(("expression", expr.strip()))
        for name, value in re.findall(
            r"environment\s+name:\s*['\"](\w+)['\"]\s*,\s*value:\s*['\"]([^'\"]+)['\"]", body
        ):
            conditions.append(("environment", f"{name}={value}"))
    return tuple(conditions)


def extract_details(text: str) -> PipelineDetails:
    """Runs every directive extractor over the raw pipeline text."""
    details = PipelineDetails(
        parameters=extract_parameters(text),
        environment=extract_environment(text),
        matrix_axes=extract_matrix_axes(text),
        parallel_stages=extract_parallel_stages(text),
        timeout_minutes=extract_timeout(text),
        retry=extract_retry(text),
        post_actions=extract_post_actions(text),
        build_discarder=extract_build_discarder(text),
        when_conditions=extract_when_conditions(text),
    )
    logger.debug(
        f"Directives: {len(details.parameters)} params, {len(details.environment)} env, "
        f"{len(details.matrix_axes)} axes, {len(details.parallel_stages)} parallel stages"
    )
    return details
