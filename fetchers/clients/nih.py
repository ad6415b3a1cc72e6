"""
NIH RePORTER projects client, used for supplementary ALN tracking.
"""

from typing import Any, Dict, List

from fetchers.clients.base import BaseClient
from fetchers.config import NIH_REPORTER_URL, TRACKER_RESULT_LIMIT


class NihReporterClient(BaseClient):
    """Client for NIH RePORTER project search."""

    provider = "NIH RePORTER"

    def projects_for_aln(self, aln: str, limit: int = TRACKER_RESULT_LIMIT) -> List[Dict[str, Any]]:
        """Projects funded under an ALN; RePORTER takes the code without its dot."""
        data = self._post(
            NIH_REPORTER_URL,
            {
                "criteria": {"cfda_codes": [aln.replace(".", "", 1)]},
                "limit": limit,
            },
        )
        return data.get("results") or []
