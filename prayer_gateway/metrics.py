# prayer_gateway/metrics.py

from prometheus_client import Counter, Histogram

# Define Prometheus metrics

# Cache Metrics
CACHE_HITS = Counter('prayer_gateway_cache_hits_total', 'Total cache hits', ['cache_type'])
CACHE_MISSES = Counter('prayer_gateway_cache_misses_total', 'Total cache misses', ['cache_type'])
CACHE_STORES = Counter('prayer_gateway_cache_stores_total', 'Total cache entries written', ['cache_type'])
CACHE_INVALIDATIONS = Counter('prayer_gateway_cache_invalidations_total', 'Total cache entries removed by location invalidation')

# API Metrics
API_REQUESTS_TOTAL = Counter('prayer_gateway_api_requests_total', 'Total upstream API requests', ['adapter_name', 'endpoint', 'status'])
API_REQUEST_DURATION_SECONDS = Histogram('prayer_gateway_api_request_duration_seconds', 'Upstream API request duration in seconds', ['adapter_name', 'endpoint'])

# Rate Limiting Metrics
RATE_LIMIT_BREACHES = Counter('prayer_gateway_rate_limit_breaches_total', 'Requests rejected by the rate limiter', ['tier'])

# Background Task Metrics
WARM_CACHE_RUNS_TOTAL = Counter('prayer_gateway_warm_cache_runs_total', 'Total cache warming runs', ['status'])
