"""
Fetcher configuration and constants.
"""

import os
from typing import Final

# USAspending.gov
USASPENDING_BASE_URL: Final[str] = os.getenv(
    "USASPENDING_BASE_URL", "https://api.usaspending.gov/api/v2"
)
USASPENDING_PAGE_LIMIT: Final[int] = int(os.getenv("USASPENDING_PAGE_LIMIT", "100"))
USASPENDING_MAX_PAGES: Final[int] = int(os.getenv("USASPENDING_MAX_PAGES", "10"))

# Grants.gov
GRANTS_GOV_SEARCH_URL: Final[str] = os.getenv(
    "GRANTS_GOV_SEARCH_URL", "https://api.grants.gov/v1/api/search2"
)
GRANTS_GOV_ROWS: Final[int] = int(os.getenv("GRANTS_GOV_ROWS", "50"))
GRANTS_GOV_MAX_PAGES: Final[int] = int(os.getenv("GRANTS_GOV_MAX_PAGES", "1"))
GRANTS_GOV_OPEN_STATUSES: Final[str] = "forecasted|posted"

# SAM.gov assistance listings
SAM_ASSISTANCE_LISTINGS_URL: Final[str] = os.getenv(
    "SAM_ASSISTANCE_LISTINGS_URL", "https://api.sam.gov/assistance-listings/v1/search"
)
SAM_LISTING_LIMIT: Final[int] = int(os.getenv("SAM_LISTING_LIMIT", "50"))

# Supplementary trackers
NIH_REPORTER_URL: Final[str] = "https://api.reporter.nih.gov/v2/projects/search"
NSF_AWARDS_URL: Final[str] = "https://api.nsf.gov/services/v1/awards.json"
TRACKER_RESULT_LIMIT: Final[int] = 10

# User Agent
USER_AGENT: Final[str] = os.getenv(
    "FETCHER_USER_AGENT",
    "Mozilla/5.0 (compatible; GrantTrailBot/1.0)"
)

# Timeouts (in seconds)
REQUEST_TIMEOUT: Final[int] = int(os.getenv("FETCHER_REQUEST_TIMEOUT", "60"))

# Grant award type codes: 02=Block, 03=Formula, 04=Project, 05=Cooperative Agreement
GRANT_AWARD_TYPE_CODES: Final[tuple] = ("02", "03", "04", "05")

US_STATE_CODES: Final[tuple] = (
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
)

ALL_STATES: Final[str] = "ALL"


def sam_api_key() -> str | None:
    """SAM.gov API key, read at call time so it can be set after import."""
    return os.getenv("SAM_API_KEY")
