# prayer_gateway/extensions.py

from flask_limiter import Limiter
from redis import from_url

from .metrics import RATE_LIMIT_BREACHES
from .utils.caller import caller_rate_limit_key, caller_tier_limit, get_rate_limited_caller


class FlaskRedis:
    """A wrapper class to provide a Flask-like interface for the Redis client."""
    def __init__(self, app=None):
        self.redis_client = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """Initialize the Redis client from the Flask app configuration."""
        self.redis_client = from_url(app.config.get('REDIS_URL'), decode_responses=True)

    def __getattr__(self, name):
        """Proxy attribute access to the underlying Redis client."""
        return getattr(self.redis_client, name)


def _record_rate_limit_breach(request_limit):
    RATE_LIMIT_BREACHES.labels(tier=get_rate_limited_caller().tier).inc()
    return None


# Rate limiting: one moving-window quota per caller, sized by the caller's tier.
# Storage, strategy and headers are read from RATELIMIT_* in the app config.
limiter = Limiter(
    key_func=caller_rate_limit_key,
    application_limits=[caller_tier_limit],
    on_breach=_record_rate_limit_breach,
)

# Redis Client extension (prayer time cache and fetch locks)
redis_client = FlaskRedis()
