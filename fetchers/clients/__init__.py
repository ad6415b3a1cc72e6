"""Upstream API clients."""

from fetchers.clients.base import BaseClient
from fetchers.clients.grants_gov import GrantsGovClient
from fetchers.clients.nih import NihReporterClient
from fetchers.clients.nsf import NsfAwardsClient
from fetchers.clients.sam_gov import SamGovClient
from fetchers.clients.usaspending import UsaSpendingClient, build_award_filters

__all__ = [
    "BaseClient",
    "GrantsGovClient",
    "NihReporterClient",
    "NsfAwardsClient",
    "SamGovClient",
    "UsaSpendingClient",
    "build_award_filters",
]
