"""
SAM.gov Assistance Listings API client.

Requires an API key passed as the `api_key` query parameter.
"""

from datetime import date
from typing import Any, Dict, List, Optional

import structlog

from fetchers.clients.base import BaseClient
from fetchers.config import SAM_ASSISTANCE_LISTINGS_URL, SAM_LISTING_LIMIT, sam_api_key
from fetchers.exceptions import ConfigurationError

logger = structlog.get_logger()


class SamGovClient(BaseClient):
    """Client for SAM.gov assistance listings (the ALN catalogue)."""

    provider = "SAM.gov"

    def __init__(self, api_key: Optional[str] = None, search_url: str = SAM_ASSISTANCE_LISTINGS_URL, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key or sam_api_key()
        self.search_url = search_url

    def search_assistance_listings(
        self,
        published_from: date,
        published_to: date,
        limit: int = SAM_LISTING_LIMIT,
    ) -> List[Dict[str, Any]]:
        """
        Search listings published inside a date window.

        Args:
            published_from: Window start
            published_to: Window end
            limit: Maximum listings

        Returns:
            Raw listing dicts

        Raises:
            ConfigurationError: If no API key is configured
            UpstreamError: On API failure
        """
        if not self.api_key:
            raise ConfigurationError("SAM_API_KEY not configured")

        logger.info(
            "sam_listings_search",
            published_from=published_from.isoformat(),
            published_to=published_to.isoformat(),
            limit=limit,
        )

        data = self._get(
            self.search_url,
            params={
                "api_key": self.api_key,
                "publishedDateFrom": published_from.isoformat(),
                "publishedDateTo": published_to.isoformat(),
                "limit": limit,
            },
        )

        listings = data.get("assistanceListingsData") or data.get("results") or []
        return listings if isinstance(listings, list) else []
