"""Background ingestion jobs, one per data source."""

from backend.app.services.ingestion.base import FetchRequest, IngestionJob, JobResult
from backend.app.services.ingestion.grants_gov import GrantsGovJob
from backend.app.services.ingestion.nasbo import NasboJob
from backend.app.services.ingestion.prime_awards import PrimeAwardsJob
from backend.app.services.ingestion.subawards import SubAwardsJob

JOBS = {
    "usaspending": PrimeAwardsJob,
    "subawards": SubAwardsJob,
    "grants-gov": GrantsGovJob,
    "nasbo": NasboJob,
}

__all__ = [
    "FetchRequest",
    "IngestionJob",
    "JobResult",
    "GrantsGovJob",
    "NasboJob",
    "PrimeAwardsJob",
    "SubAwardsJob",
    "JOBS",
]
