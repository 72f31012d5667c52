# prayer_gateway/routes/main_routes.py

from flask import current_app
from flask_smorest import Blueprint
from redis import exceptions as redis_exceptions

from prayer_gateway.extensions import limiter, redis_client
from prayer_gateway.schemas import HealthSchema, MessageSchema

main_bp = Blueprint('Main', __name__, url_prefix='/')


@main_bp.route('/')
@limiter.exempt
@main_bp.response(200, MessageSchema)
def index():
    """
    Main endpoint for the API.
    """
    return {"message": "Welcome to the Prayer Times Gateway API!"}


@main_bp.route('/health')
@limiter.exempt
@main_bp.response(200, HealthSchema, description="The gateway and its cache are reachable.")
@main_bp.alt_response(503, schema=HealthSchema, description="The cache is unreachable.")
def health():
    """
    Liveness check. Reports whether the Redis cache answers a PING.
    """
    try:
        redis_client.ping()
    except redis_exceptions.RedisError as e:
        current_app.logger.error(f"Health check: Redis ping failed: {e}")
        return {"status": "degraded", "redis": "unavailable"}, 503
    return {"status": "ok", "redis": "ok"}
