"""
ShiftCI CONFIGURATION MANAGER
------------------------------
Handles loading and parsing of user configuration (.shiftci.yaml).
Allows customization of:
- GitLab target (URL, project id, environment scope)
- Input size cap
- Production tokens used to protect variables
- External services (CI lint, advisory text)
- Ignore patterns (glob-based)
"""

import os
import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from fnmatch import fnmatch
from ruamel.yaml import YAML

from shiftci.core.errors import ConfigError

logger = logging.getLogger("shiftci.config")

ENV_OVERRIDES = {
    "SHIFTCI_GITLAB_URL": ("target", "gitlab_url"),
    "SHIFTCI_ADVISOR_URL": ("services", "advisor_url"),
    "SHIFTCI_GITLAB_TOKEN": ("services", "gitlab_token"),
}


class ConfigManager:
    """
    Manages user configuration state.
    defaults:
      limits.max_input_bytes: 4 MiB
      target.environment_scope: "*"
    """

    DEFAULT_CONFIG = {
        "target": {
            "gitlab_url": "https://gitlab.com",
            "project_id": None,
            "environment_scope": "*",
        },
        "limits": {
            "max_input_bytes": 4 * 1024 * 1024,
        },
        "secrets": {
            "production_tokens": ["prod", "production", "prd", "live", "release", "deploy"],
        },
        "services": {
            "lint_enabled": False,
            "gitlab_token": None,
            "advisor_url": None,
            "timeout_seconds": 10,
        },
        "ignore": [
            ".git/*",
            "node_modules/*",
            "venv/*",
            "__pycache__/*",
        ],
    }

    def __init__(self, workspace_root: Path, app_name: str = "ShiftCI"):
        self.workspace = Path(workspace_root)
        self.app_name = app_name
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)
        self.source: Optional[Path] = None
        self._load_config()
        self._apply_env_overrides()

    def _load_config(self):
        """
        Attempts to load configuration from:
        1. .<app_name>/config.yaml (Preferred)
        2. .<app_name>.yaml (Root file)
        3. .shiftci.yaml (Fallback if branded differently)
        """
        yaml = YAML(typ='safe')

        state_config = self.workspace / f".{self.app_name}" / "config.yaml"
        possible_files = [state_config, self.workspace / f".{self.app_name}.yaml", self.workspace / ".shiftci.yaml"]

        for path in possible_files:
            if path.exists():
                try:
                    loaded = yaml.load(path)
                except Exception as e:
                    logger.warning(f"Failed to parse {path.name}: {e}")
                    continue
                if isinstance(loaded, dict):
                    self._merge_config(loaded)
                self.source = path
                logger.info(f"Loaded configuration from {path.name}")
                return

    def _merge_config(self, user_config: Dict[str, Any]):
        """Depth-1 merge of user config into defaults."""
        for section in ("target", "limits", "secrets", "services"):
            if section in user_config:
                if not isinstance(user_config[section], dict):
                    raise ConfigError(f"Config section '{section}' must be a mapping")
                self.config[section].update(user_config[section])
        if "ignore" in user_config:
            if not isinstance(user_config["ignore"], list):
                raise ConfigError("Config section 'ignore' must be a list")
            self.config["ignore"] = list(user_config["ignore"])

    def _apply_env_overrides(self):
        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                self.config[section][key] = value
                logger.debug(f"{env_name} overrides {section}.{key}")

    def is_ignored(self, file_path: str) -> bool:
        """True when the relative path matches an ignore pattern."""
        return any(fnmatch(file_path, pattern) for pattern in self.config.get("ignore", []))

    @property
    def gitlab_url(self) -> str:
        return str(self.config["target"]["gitlab_url"]).rstrip("/")

    @property
    def project_id(self) -> Optional[str]:
        value = self.config["target"].get("project_id")
        return str(value) if value is not None else None

    @property
    def environment_scope(self) -> str:
        return str(self.config["target"].get("environment_scope") or "*")

    @property
    def max_input_bytes(self) -> int:
        value = self.config["limits"].get("max_input_bytes")
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ConfigError(f"limits.max_input_bytes must be a positive integer, got {value!r}")
        return value

    @property
    def production_tokens(self) -> List[str]:
        return [str(t) for t in self.config["secrets"].get("production_tokens") or []]

    @property
    def lint_enabled(self) -> bool:
        return bool(self.config["services"].get("lint_enabled"))

    @property
    def gitlab_token(self) -> Optional[str]:
        """Personal access token for the CI lint endpoint."""
        value = self.config["services"].get("gitlab_token")
        return str(value) if value else None

    @property
    def advisor_url(self) -> Optional[str]:
        return self.config["services"].get("advisor_url")

    @property
    def timeout_seconds(self) -> float:
        return float(self.config["services"].get("timeout_seconds") or 10)
