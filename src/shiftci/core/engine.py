"""
ShiftCI ENGINE - The Orchestrator
---------------------------------
Coordinates the complete Jenkins -> GitLab CI migration workflow:

1. Read the Jenkinsfile (workspace-contained, size-capped, BOM tolerant)
2. Scan features and compute verdicts
3. Extract credentials and map them to CI/CD variables
4. Synthesize and validate .gitlab-ci.yml
5. Optionally lint remotely and fetch advisory text

Results are plain dicts so reporters and formatters can consume them
without knowing the model classes.
"""

import time
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from shiftci.core.config import ConfigManager
from shiftci.core.errors import InputTooLargeError
from shiftci.core.io import FileSystemManager
from shiftci.core.secrets import map_to_variables, render_env_file, render_provisioning_script, validate
from shiftci.core.synthesizer import render, synthesize
from shiftci.core.verdicts import analyze_all, generate_smart_recommendations, render_checklist, summarize
from shiftci.integrations.advisor import AdvisorClient
from shiftci.integrations.http import STATUS_SKIPPED, ServiceResult
from shiftci.integrations.lint import LintClient
from shiftci.parsers.credentials import analyze_credential_usage, credential_context, extract_credentials
from shiftci.parsers.scanner import scan

logger = logging.getLogger("shiftci.engine")

OUTPUT_FILES = {
    "gitlab_ci": ".gitlab-ci.yml",
    "env_file": "gitlab-ci-variables.env",
    "provisioning_script": "create_gitlab_vars.sh",
    "checklist": "MIGRATION_CHECKLIST.md",
}


class MigrationEngine:
    """
    Main orchestrator. Owns configuration, file access and the optional
    service clients; the migration logic itself lives in pure functions.
    """

    def __init__(self,
                 workspace_path: str,
                 app_name: str = "ShiftCI",
                 lint_client: Optional[LintClient] = None,
                 advisor_client: Optional[AdvisorClient] = None):
        self.workspace = Path(workspace_path).resolve()
        self.app_name = app_name
        self.fs = FileSystemManager(self.workspace, app_name=self.app_name)
        self.config = ConfigManager(self.workspace, app_name=self.app_name)

        if lint_client is None and self.config.lint_enabled:
            lint_client = LintClient(self.config.gitlab_url,
                                     token=self.config.gitlab_token,
                                     timeout=self.config.timeout_seconds)
        if advisor_client is None and self.config.advisor_url:
            advisor_client = AdvisorClient(self.config.advisor_url, timeout=self.config.timeout_seconds)
        self.lint_client = lint_client
        self.advisor_client = advisor_client

        logger.info(f"Engine initialized for workspace {self.workspace}")

    def check_size(self, text: str) -> None:
        size = len(text.encode("utf-8"))
        limit = self.config.max_input_bytes
        if size > limit:
            raise InputTooLargeError(size, limit)

    def analyze_text(self,
                     text: str,
                     source_name: str = "Jenkinsfile",
                     lint: bool = False,
                     advise: bool = False,
                     generated_at: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Runs every migration stage over in-memory Jenkinsfile text.
        """
        start_time = time.time()
        logs = []

        try:
            self.check_size(text)
        except InputTooLargeError as e:
            return self._file_error(source_name, "INPUT_TOO_LARGE", str(e))

        # Stage 1: structure + verdicts
        profile = scan(text)
        verdicts = analyze_all(profile)
        summary = summarize(verdicts)
        recommendations = generate_smart_recommendations(verdicts)
        logs.append(f"Stage 1: {profile.pipeline_kind.value} pipeline, {profile.feature_count} features, "
                    f"tier {profile.complexity_tier.value}")

        # Stage 2: credentials
        hits = extract_credentials(text)
        specs = map_to_variables(hits,
                                 environment_scope=self.config.environment_scope,
                                 production_tokens=self.config.production_tokens)
        spec_validation = validate(specs)
        logs.append(f"Stage 2: {len(hits)} credential references -> {len(specs)} variables")

        # Stage 3: target document
        document = synthesize(profile, verdicts, specs)
        gitlab_ci = render(document, generated_at=generated_at, source_name=source_name)
        logs.append(f"Stage 3: {len(document.jobs)} jobs, valid={document.validation.valid}")
        for error in document.validation.errors:
            logs.append(f"ERROR: {error}")
        for warning in document.validation.warnings:
            logs.append(f"WARNING: {warning}")

        # Stage 4: optional services
        lint_result = ServiceResult(status=STATUS_SKIPPED)
        if lint and self.lint_client is not None:
            lint_result = self.lint_client.lint(gitlab_ci)
            logs.append(f"Stage 4: CI lint {lint_result.status}")

        advisory = ServiceResult(status=STATUS_SKIPPED)
        if advise and self.advisor_client is not None:
            advisory = self.advisor_client.advise(recommendations, context=summary.to_dict())

        success = document.validation.valid and spec_validation.valid
        return {
            "file_path": source_name,
            "status": "CONVERTED" if success else "INVALID",
            "success": success,
            "profile": profile.to_dict(),
            "verdicts": [v.to_dict() for v in verdicts],
            "summary": summary.to_dict(),
            "recommendations": [r.to_dict() for r in recommendations],
            "checklist": render_checklist(verdicts),
            "credentials": [h.to_dict() for h in hits],
            "credential_usage": analyze_credential_usage(hits),
            "credential_audit": [credential_context(text, h) for h in hits],
            "variables": [s.to_dict() for s in specs],
            "variables_validation": spec_validation.to_dict(),
            "env_file": render_env_file(specs),
            "provisioning_script": render_provisioning_script(
                specs,
                project_id=self.config.project_id,
                api_url=f"{self.config.gitlab_url}/api/v4",
            ),
            "document": document.to_dict(),
            "validation": document.validation.to_dict(),
            "gitlab_ci": gitlab_ci,
            "lint": lint_result.to_dict(),
            "advisory": advisory.to_dict(),
            "logic_logs": logs,
            "timestamp": time.time(),
            "processing_time_seconds": round(time.time() - start_time, 4),
        }

    def analyze_file(self, relative_path: str, lint: bool = False, advise: bool = False) -> Dict[str, Any]:
        """
        Reads a Jenkinsfile from the workspace and analyzes it.
        """
        try:
            full_path = self.fs.resolve_inside(relative_path)
        except PermissionError:
            return self._file_error(relative_path, "SECURITY_ERROR", "Path outside workspace")

        if self.config.is_ignored(relative_path):
            return {
                "file_path": relative_path,
                "status": "IGNORED",
                "success": True,
                "logic_logs": [f"File ignored by .{self.app_name.lower()}.yaml config"],
                "timestamp": time.time(),
            }

        if not full_path.is_file():
            return self._file_error(relative_path, "FILE_NOT_FOUND", "Path does not exist")

        size = full_path.stat().st_size
        if size > self.config.max_input_bytes:
            return self._file_error(relative_path, "INPUT_TOO_LARGE",
                                    str(InputTooLargeError(size, self.config.max_input_bytes)))

        try:
            text = self.fs.read_text(full_path)
        except OSError as e:
            logger.error(f"Failed to read {relative_path}: {e}")
            return self._file_error(relative_path, "ENGINE_ERROR", str(e))

        return self.analyze_text(text, source_name=relative_path, lint=lint, advise=advise)

    def write_outputs(self, result: Dict[str, Any], output_dir: str = ".") -> Dict[str, str]:
        """
        Atomically writes every generated artifact. Returns {artifact: path}.
        """
        if not result.get("gitlab_ci"):
            return {}

        written = {}
        for key in OUTPUT_FILES:
            if key in ("env_file", "provisioning_script") and not result.get("variables"):
                continue
            if result.get(key):
                written[key] = self.write_artifact(key, result[key], output_dir)
        return written

    def write_artifact(self, key: str, content: str, output_dir: str = ".") -> str:
        """Atomically writes one artifact under its standard file name."""
        target_dir = self.fs.ensure_dir(self.fs.resolve_inside(output_dir))
        path = target_dir / OUTPUT_FILES[key]
        self.fs.atomic_write(path, content)
        if key == "provisioning_script":
            path.chmod(0o755)
        logger.info(f"Wrote {path}")
        return str(path)

    def _file_error(self, path: str, status: str, error: str) -> Dict[str, Any]:
        """Standardized error result."""
        return {
            "file_path": path,
            "status": status,
            "error": error,
            "success": False,
            "logic_logs": [f"Error: {error}"],
            "timestamp": time.time(),
        }
