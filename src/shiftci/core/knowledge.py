"""
ShiftCI KNOWLEDGE BASE
----------------------
Static Jenkins feature -> GitLab CI compatibility table.

• Loaded once from the bundled data file (data/knowledge_base.yaml)
• Read-only after load
• Unknown keys resolve to an 'unknown' entry, never an error

Extending coverage means editing the data file, not this module.
"""

import logging
import pkgutil
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from shiftci.core.errors import KnowledgeBaseError
from shiftci.models import CompatibilityStatus, FeatureHit, KnowledgeEntry, RiskTag

logger = logging.getLogger("shiftci.knowledge")

DATA_PACKAGE = "shiftci.core"
DATA_RESOURCE = "data/knowledge_base.yaml"


def _entry_from_record(key: str, record: Dict[str, Any]) -> KnowledgeEntry:
    try:
        status = CompatibilityStatus(record.get("status", "unknown"))
        tags = frozenset(RiskTag(t) for t in (record.get("risk_tags") or []))
    except ValueError as e:
        raise KnowledgeBaseError(f"Invalid knowledge base entry '{key}': {e}")

    return KnowledgeEntry(
        key=key,
        status=status,
        target_equivalent=record.get("target"),
        alternatives=tuple(record.get("alternatives") or ()),
        risk_tags=tags,
        notes=record.get("notes", ""),
        include=record.get("include"),
        documentation=record.get("documentation"),
    )


def parse_knowledge_base(raw: Any) -> Mapping[str, KnowledgeEntry]:
    """Validates a loaded YAML document and freezes it into a read-only mapping."""
    if not isinstance(raw, dict) or not isinstance(raw.get("features"), dict):
        raise KnowledgeBaseError("Knowledge base must be a mapping with a 'features' section")

    entries = {key: _entry_from_record(key, record or {}) for key, record in raw["features"].items()}
    return MappingProxyType(entries)


def read_resource() -> Any:
    data = pkgutil.get_data(DATA_PACKAGE, DATA_RESOURCE)
    if data is None:
        raise KnowledgeBaseError(f"Bundled resource {DATA_RESOURCE} not found")
    return yaml.safe_load(data)


_RAW = read_resource()
KNOWLEDGE_BASE: Mapping[str, KnowledgeEntry] = parse_knowledge_base(_RAW)
KNOWLEDGE_BASE_VERSION: str = str(_RAW.get("version", "unversioned"))
logger.debug(f"Loaded {len(KNOWLEDGE_BASE)} knowledge base entries (version {KNOWLEDGE_BASE_VERSION})")


def unknown_entry(key: str) -> KnowledgeEntry:
    return KnowledgeEntry(
        key=key,
        status=CompatibilityStatus.UNKNOWN,
        notes="No compatibility data for this feature; manual research required.",
    )


def assess_compatibility(
    feature: Union[FeatureHit, str],
    knowledge: Optional[Mapping[str, KnowledgeEntry]] = None,
) -> KnowledgeEntry:
    """
    Exact-key lookup by feature hit or key. Absence yields status 'unknown'
    with no alternatives.
    """
    key = feature.key if isinstance(feature, FeatureHit) else feature
    table = KNOWLEDGE_BASE if knowledge is None else knowledge
    entry = table.get(key)
    if entry is None:
        logger.debug(f"No knowledge base entry for '{key}'")
        return unknown_entry(key)
    return entry


def list_all(status: Optional[CompatibilityStatus] = None) -> List[KnowledgeEntry]:
    """Returns every entry, optionally filtered by status, sorted by key."""
    entries = sorted(KNOWLEDGE_BASE.values(), key=lambda e: e.key)
    if status is None:
        return entries
    return [e for e in entries if e.status is status]
