"""Upstream grant-data fetchers: API clients, pagination and classification."""
