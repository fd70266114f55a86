"""
ShiftCI ADVISORY CLIENT
-----------------------
Asks an external text service to turn prioritized recommendations into
prose guidance. Optional: without a configured URL every call is skipped.
"""

import logging
from typing import Optional, Sequence

from shiftci.integrations.http import STATUS_DEGRADED, STATUS_OK, STATUS_SKIPPED, ServiceResult, post_json
from shiftci.models import Recommendation

logger = logging.getLogger("shiftci.advisor")


class AdvisorClient:
    def __init__(self, url: Optional[str] = None, timeout: float = 10):
        self.url = url
        self.timeout = timeout

    def advise(self, recommendations: Sequence[Recommendation], context: Optional[dict] = None) -> ServiceResult:
        """data is the advisory text (str) when the service answered."""
        if not self.url:
            return ServiceResult(status=STATUS_SKIPPED)

        payload = {
            "recommendations": [r.to_dict() for r in recommendations],
            "context": context or {},
        }
        result = post_json(self.url, payload, self.timeout)
        if not result.ok:
            return result

        body = result.data
        text = body.get("text") if isinstance(body, dict) else None
        if not isinstance(text, str) or not text.strip():
            return ServiceResult(status=STATUS_DEGRADED, error="Advisory response had no text")
        logger.debug(f"Advisory text received ({len(text)} chars)")
        return ServiceResult(status=STATUS_OK, data=text)
