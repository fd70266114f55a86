"""
ShiftCI HTTP TRANSPORT
----------------------
Minimal JSON-over-HTTP helper shared by the external service clients.

• urllib only (no session state)
• Per-call timeout
• At most one retry, and only for transient failures
• Never raises to callers: failures become a 'degraded' ServiceResult
"""

import json
import socket
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger("shiftci.http")

USER_AGENT = "ShiftCI-CLI/0.1.0"
MAX_ATTEMPTS = 2

STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"
STATUS_SKIPPED = "skipped"


@dataclass(frozen=True)
class ServiceResult:
    status: str  # ok | degraded | skipped
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "data": self.data, "error": self.error}


class TransientError(Exception):
    """Network hiccup or 5xx worth one retry."""


def _attempt(request: urllib.request.Request, timeout: float) -> Any:
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read()
    except urllib.error.HTTPError as e:
        if e.code >= 500:
            raise TransientError(f"HTTP {e.code}")
        if e.code == 429:
            raise RuntimeError("Rate limit exceeded")
        raise RuntimeError(f"HTTP {e.code}: {e.reason}")
    except (urllib.error.URLError, socket.timeout, ConnectionError) as e:
        raise TransientError(str(getattr(e, "reason", e)))

    try:
        return json.loads(body.decode("utf-8")) if body else None
    except ValueError as e:
        raise RuntimeError(f"Invalid JSON received: {e}")


def post_json(url: str, payload: Dict[str, Any], timeout: float,
              headers: Optional[Dict[str, str]] = None) -> ServiceResult:
    all_headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    }
    all_headers.update(headers or {})
    data = json.dumps(payload).encode("utf-8")

    last_error = None
    for attempt in range(1, MAX_ATTEMPTS + 1):
        request = urllib.request.Request(url, data=data, headers=all_headers, method="POST")
        try:
            return ServiceResult(status=STATUS_OK, data=_attempt(request, timeout))
        except TransientError as e:
            last_error = str(e)
            logger.warning(f"POST {url} failed (attempt {attempt}/{MAX_ATTEMPTS}): {e}")
        except RuntimeError as e:
            logger.warning(f"POST {url} failed: {e}")
            return ServiceResult(status=STATUS_DEGRADED, error=str(e))

    return ServiceResult(status=STATUS_DEGRADED, error=last_error)
