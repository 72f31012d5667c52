import os
from dotenv import load_dotenv

# Load .env file
dotenv_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path)
else:
    print("Warning: .env file not found. Using defaults or environment variables.")


def _parse_api_keys(raw_value):
    """
    Parses the API_KEYS environment value ("key1:premium,key2:internal")
    into a {api_key: tier} mapping. Entries without a tier default to 'standard'.
    """
    api_keys = {}
    for item in (raw_value or '').split(','):
        item = item.strip()
        if not item:
            continue
        key, _, tier = item.partition(':')
        api_keys[key.strip()] = tier.strip() or 'standard'
    return api_keys


def _parse_tier_list(raw_value, default):
    return tuple(t.strip() for t in (raw_value or default).split(',') if t.strip())


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'a_default_fallback_secret_key_for_development_only'
    LOG_LEVEL = "INFO"

    # Sentry Configuration
    SENTRY_DSN = os.environ.get('SENTRY_DSN')

    # Redis and Caching Configuration
    # Used for the prayer time cache, fetch locks and (by default) rate-limit counters.
    REDIS_URL = os.environ.get('REDIS_URL') or 'redis://localhost:6379/0'
    CACHE_SCHEMA_VERSION = os.environ.get('CACHE_SCHEMA_VERSION', 'v1')
    HIJRI_CACHE_TTL_SECONDS = int(os.environ.get('HIJRI_CACHE_TTL_SECONDS', 7 * 24 * 3600))
    QIBLA_CACHE_TTL_SECONDS = int(os.environ.get('QIBLA_CACHE_TTL_SECONDS', 30 * 24 * 3600))
    CACHE_LOCK_TTL_SECONDS = int(os.environ.get('CACHE_LOCK_TTL_SECONDS', 30))
    CACHE_LOCK_WAIT_SECONDS = float(os.environ.get('CACHE_LOCK_WAIT_SECONDS', 2.0))
    LOCATION_KEY_PRECISION = int(os.environ.get('LOCATION_KEY_PRECISION', 2))

    # Prayer Time API Configuration
    PRAYER_API_ADAPTER = os.environ.get('PRAYER_API_ADAPTER') or "AlAdhanAdapter"
    PRAYER_API_BASE_URL = os.environ.get('PRAYER_API_BASE_URL') or "https://api.aladhan.com/v1"
    PRAYER_API_KEY = os.environ.get('PRAYER_API_KEY')
    PRAYER_API_TIMEOUT_SECONDS = float(os.environ.get('PRAYER_API_TIMEOUT_SECONDS', 10))
    PRAYER_API_CALENDAR_TIMEOUT_SECONDS = float(os.environ.get('PRAYER_API_CALENDAR_TIMEOUT_SECONDS', 30))
    PRAYER_API_MAX_RETRIES = int(os.environ.get('PRAYER_API_MAX_RETRIES', 3))
    PRAYER_API_BACKOFF_FACTOR = float(os.environ.get('PRAYER_API_BACKOFF_FACTOR', 0.5))

    # Default Calculation Method (3 = Muslim World League) and Asr school (0 = Standard)
    DEFAULT_CALCULATION_METHOD_ID = int(os.environ.get('DEFAULT_CALCULATION_METHOD_ID', 3))
    DEFAULT_SCHOOL = int(os.environ.get('DEFAULT_SCHOOL', 0))

    # Rate Limiting Configuration (Flask-Limiter)
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI') or REDIS_URL
    RATELIMIT_STRATEGY = "moving-window"
    RATELIMIT_HEADERS_ENABLED = True
    # Fail open if the counter storage is unreachable.
    RATELIMIT_SWALLOW_ERRORS = True
    RATE_LIMIT_TIERS = {
        'anonymous': os.environ.get('RATE_LIMIT_ANONYMOUS', "30 per minute;500 per day"),
        'standard': os.environ.get('RATE_LIMIT_STANDARD', "120 per minute;5000 per day"),
        'premium': os.environ.get('RATE_LIMIT_PREMIUM', "600 per minute;50000 per day"),
        'internal': os.environ.get('RATE_LIMIT_INTERNAL', "3000 per minute"),
    }
    CALENDAR_RATE_LIMIT = os.environ.get('CALENDAR_RATE_LIMIT', "10 per minute")

    # Caller tiers. API_KEYS maps a static key to its tier, e.g. "abc123:premium,def456:internal".
    API_KEY_HEADER = 'X-API-Key'
    API_KEYS = _parse_api_keys(os.environ.get('API_KEYS'))
    CACHE_ADMIN_TIERS = _parse_tier_list(os.environ.get('CACHE_ADMIN_TIERS'), 'internal')
    CACHE_REFRESH_TIERS = _parse_tier_list(os.environ.get('CACHE_REFRESH_TIERS'), 'premium,internal')

    # Cache warming script
    WARM_CACHE_MAX_DAYS = int(os.environ.get('WARM_CACHE_MAX_DAYS', 31))


class DevelopmentConfig(Config):
    FLASK_ENV = 'development'
    DEBUG = True
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    FLASK_ENV = 'production'
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    REDIS_URL = 'redis://localhost:6379/15'
    # In-memory counters so the tests never need a running Redis for rate limiting.
    RATELIMIT_STORAGE_URI = 'memory://'
    RATE_LIMIT_TIERS = {
        'anonymous': "1000 per minute",
        'standard': "1000 per minute",
        'premium': "1000 per minute",
        'internal': "1000 per minute",
    }
    CALENDAR_RATE_LIMIT = "1000 per minute"
    API_KEYS = {
        'test-standard-key': 'standard',
        'test-premium-key': 'premium',
        'test-internal-key': 'internal',
    }
    CACHE_LOCK_WAIT_SECONDS = 0
    PRAYER_API_MAX_RETRIES = 0


config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
