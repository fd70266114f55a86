"""
ShiftCI CI LINT CLIENT
----------------------
Validates generated configuration with the GitLab CI Lint API
(POST {base}/api/v4/ci/lint).

A lint failure never invalidates local results: network problems are
reported as a degraded ServiceResult.
"""

import logging
from typing import Optional

from shiftci.integrations.http import STATUS_DEGRADED, STATUS_OK, ServiceResult, post_json

logger = logging.getLogger("shiftci.lint")


class LintClient:
    def __init__(self, base_url: str = "https://gitlab.com", timeout: float = 10, token: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token = token

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/api/v4/ci/lint"

    def lint(self, content: str) -> ServiceResult:
        """
        Returns data = {"valid": bool, "errors": [...], "warnings": [...]}
        when the service answered.
        """
        if not content or not content.strip():
            return ServiceResult(status=STATUS_OK, data={"valid": False, "errors": ["YAML content is empty"], "warnings": []})

        headers = {"PRIVATE-TOKEN": self.token} if self.token else {}
        result = post_json(self.endpoint, {"content": content, "include_merged_yaml": True}, self.timeout, headers)
        if not result.ok:
            return result

        body = result.data if isinstance(result.data, dict) else {}
        if not body:
            return ServiceResult(status=STATUS_DEGRADED, error="Empty lint response")

        valid = body.get("valid") is True or body.get("status") == "valid"
        data = {
            "valid": valid,
            "errors": list(body.get("errors") or []),
            "warnings": list(body.get("warnings") or []),
        }
        logger.info(f"CI lint: valid={valid}, {len(data['errors'])} errors")
        return ServiceResult(status=STATUS_OK, data=data)
