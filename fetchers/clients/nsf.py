"""
NSF Awards API client, used for supplementary ALN tracking.

No authentication required.
"""

from typing import Any, Dict, List

from fetchers.clients.base import BaseClient
from fetchers.config import NSF_AWARDS_URL

NSF_PRINT_FIELDS = "id,awardeeName,fundsObligatedAmt,title,startDate,expDate"


class NsfAwardsClient(BaseClient):
    """Client for the NSF Awards search."""

    provider = "NSF"

    def awards_for_aln(self, aln: str) -> List[Dict[str, Any]]:
        data = self._get(
            NSF_AWARDS_URL,
            params={"cfdaNumber": aln, "printFields": NSF_PRINT_FIELDS},
        )
        return (data.get("response") or {}).get("award") or []
