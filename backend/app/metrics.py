"""
Prometheus metrics.
"""

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
REQUEST_DURATION = Histogram('http_request_duration_seconds', 'HTTP request duration')
INGESTION_RECORDS = Counter(
    'ingestion_records_total',
    'Records handled by ingestion jobs',
    ['source', 'kind']
)
INGESTION_JOBS = Counter(
    'ingestion_jobs_total',
    'Ingestion jobs finished',
    ['source', 'status']
)
DISCOVERY_STAGES = Counter(
    'discovery_stages_total',
    'Money-trail discovery stages run',
    ['stage', 'outcome']
)
