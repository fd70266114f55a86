"""
ShiftCI CREDENTIAL EXTRACTOR
----------------------------
Finds secret-declaration call sites in a Jenkinsfile, line by line.

Each pattern fixes the credential kind it reports. Hits keep their 1-based
line number, the matched text and the (truncated) containing line.
The same id used at several call sites yields several hits.
"""

import re
import logging
from dataclasses import dataclass
from typing import Dict, List, Pattern, Tuple

from shiftci.models import CredentialHit, CredentialKind

logger = logging.getLogger("shiftci.credentials")

CONTEXT_LIMIT = 120

_ID = r"['\"]([^'\"]+)['\"]"


@dataclass(frozen=True)
class CredentialPattern:
    regex: Pattern
    kind: CredentialKind
    description: str


def _c(pattern: str, kind: CredentialKind, description: str) -> CredentialPattern:
    return CredentialPattern(re.compile(pattern), kind, description)


# Specific bindings first: on a tie for the same id and column the earlier pattern wins.
CREDENTIAL_PATTERNS: Tuple[CredentialPattern, ...] = (
    _c(r"usernamePassword\s*\([^)]*credentialsId\s*:\s*" + _ID, CredentialKind.USERNAME_PASSWORD,
       "Username/password binding"),
    _c(r"usernameColonPassword\s*\([^)]*credentialsId\s*:\s*" + _ID, CredentialKind.USERNAME_PASSWORD,
       "Username:password binding"),
    _c(r"\bstring\s*\([^)]*credentialsId\s*:\s*" + _ID, CredentialKind.SECRET_TEXT,
       "Secret text binding"),
    _c(r"\bfile\s*\([^)]*credentialsId\s*:\s*" + _ID, CredentialKind.FILE,
       "Secret file binding"),
    _c(r"kubeconfigFile\s*\([^)]*credentialsId\s*:\s*" + _ID, CredentialKind.FILE,
       "Kubernetes config file"),
    _c(r"sshUserPrivateKey\s*\([^)]*credentialsId\s*:\s*" + _ID, CredentialKind.SSH_KEY,
       "SSH private key binding"),
    _c(r"\bsshagent\s*\(\s*(?:credentials\s*:\s*)?\[\s*" + _ID, CredentialKind.SSH_KEY,
       "SSH agent"),
    _c(r"\bcertificate\s*\([^)]*credentialsId\s*:\s*" + _ID, CredentialKind.CERTIFICATE,
       "Certificate binding"),
    _c(r"docker\.withRegistry\s*\([^,)]*,\s*" + _ID, CredentialKind.USERNAME_PASSWORD,
       "Docker registry credentials"),
    _c(r"withAWS\s*\([^)]*credentials\s*:\s*" + _ID, CredentialKind.UNKNOWN,
       "AWS credentials"),
    _c(r"\bcredentials\s*\(\s*" + _ID + r"\s*\)", CredentialKind.UNKNOWN,
       "credentials() helper"),
)


def _context(line: str) -> str:
    stripped = line.strip()
    if len(stripped) > CONTEXT_LIMIT:
        return stripped[:CONTEXT_LIMIT - 3] + "..."
    return stripped


def scan_line(line: str, line_number: int) -> List[CredentialHit]:
    """Returns the hits on a single line, ordered by column."""
    found: Dict[Tuple[str, int], CredentialHit] = {}
    for pattern in CREDENTIAL_PATTERNS:
        for m in pattern.regex.finditer(line):
            cred_id = m.group(1).strip()
            if not cred_id:
                continue
            column = m.start(1)
            if (cred_id, column) in found:
                continue
            found[(cred_id, column)] = CredentialHit(
                id=cred_id,
                line=line_number,
                kind=pattern.kind,
                raw_match=m.group(0),
                context=_context(line),
                column=column,
            )
    return sorted(found.values(), key=lambda h: h.column)


def extract_credentials(text: str) -> List[CredentialHit]:
    """
    Scans every line for credential call sites. Never raises; text with no
    credential usage yields an empty list.
    """
    hits: List[CredentialHit] = []
    for number, line in enumerate(text.split("\n"), start=1):
        hits.extend(scan_line(line, number))
    logger.info(f"Found {len(hits)} credential references ({len({h.id for h in hits})} unique ids)")
    return hits


_SECRET_HINT = re.compile(r"token|key|secret|pass|pwd|cert|pem", re.IGNORECASE)


def analyze_credential_usage(hits: List[CredentialHit]) -> Dict[str, object]:
    """Summary used by reports: counts by kind plus migration advice."""
    by_kind = {kind.value: 0 for kind in CredentialKind}
    for hit in hits:
        by_kind[hit.kind.value] += 1

    unique_ids = sorted({h.id for h in hits})
    potential_secrets = sorted({h.id for h in hits if _SECRET_HINT.search(h.id)})

    advice = []
    if by_kind[CredentialKind.FILE.value]:
        advice.append("File credentials become file-type CI/CD variables (cannot be masked).")
    if by_kind[CredentialKind.SSH_KEY.value]:
        advice.append("Load SSH keys with ssh-agent in before_script from a file variable.")
    if by_kind[CredentialKind.USERNAME_PASSWORD.value]:
        advice.append("Username/password pairs need two variables or a single masked token.")
    if by_kind[CredentialKind.UNKNOWN.value]:
        advice.append("Check the Jenkins credential store to confirm the type of generic credentials() references.")
    if len(unique_ids) > 10:
        advice.append("Large credential inventory: consider an external secrets manager (Vault).")

    return {
        "total": len(hits),
        "unique": len(unique_ids),
        "by_kind": by_kind,
        "potential_secrets": potential_secrets,
        "advice": advice,
    }


def credential_context(text: str, hit: CredentialHit, radius: int = 2) -> str:
    """Numbered lines around a hit, with the hit line marked, for audit output."""
    lines = text.split("\n")
    start = max(1, hit.line - radius)
    end = min(len(lines), hit.line + radius)
    out = []
    for number in range(start, end + 1):
        marker = ">" if number == hit.line else " "
        out.append(f"{marker}{number:4d} | {lines[number - 1]}")
    return "\n".join(out)
