# prayer_gateway/routes/api_routes.py
import datetime
from typing import Any, Dict

from flask import current_app
from flask_smorest import Blueprint, abort
from prometheus_client import generate_latest

from prayer_gateway.extensions import limiter
from prayer_gateway.schemas import (
    CalendarArgsSchema,
    CalendarResponseSchema,
    CityTimingsArgsSchema,
    HijriResponseSchema,
    InvalidationResponseSchema,
    LocationInvalidationArgsSchema,
    MessageSchema,
    PrayerTimesResponseSchema,
    QiblaArgsSchema,
    QiblaResponseSchema,
    QuotaSchema,
    TimingsArgsSchema,
)
from prayer_gateway.services.prayer_time.exceptions import PrayerTimeServiceError
from prayer_gateway.services.prayer_time_service import (
    GatewayResult,
    convert_gregorian_to_hijri,
    get_monthly_calendar,
    get_qibla_direction,
    get_timings_for_city,
    get_timings_for_coordinates,
    invalidate_cached_location,
)
from prayer_gateway.utils.caller import calendar_rate_limit, caller_tier_limit, get_current_caller, tier_required
from prayer_gateway.utils.time_utils import parse_request_date

api_bp = Blueprint(
    'API',
    __name__,
    url_prefix='/api',
    description="Cached, rate-limited access to prayer times, Hijri dates and Qibla directions."
)


@api_bp.before_request
def identify_caller():
    """Resolve the caller up front so an invalid API key is rejected on every route."""
    get_current_caller()


def _parse_date_or_abort(date_str: str) -> datetime.date:
    date_obj = parse_request_date(date_str)
    if date_obj is None:
        abort(400, message=f"Invalid date '{date_str}'. Use DD-MM-YYYY or YYYY-MM-DD.")
    return date_obj


def _abort_for(error: PrayerTimeServiceError):
    if error.status_code >= 500:
        current_app.logger.error(f"Prayer time service error: {error}")
    abort(error.status_code, message=error.message)


def _ensure_refresh_allowed(args: Dict[str, Any]) -> bool:
    """`refresh=true` skips the cache; only tiers in CACHE_REFRESH_TIERS may ask for it."""
    if not args.get('refresh'):
        return False
    caller = get_current_caller()
    if caller.tier not in current_app.config.get('CACHE_REFRESH_TIERS', ()):
        abort(403, message=f"Tier '{caller.tier}' may not bypass the cache.")
    return True


def _envelope(result: GatewayResult):
    """Wraps data in the upstream-style envelope and reports how it was served."""
    headers = {
        "X-Cache": "HIT" if result.cache_hit else "MISS",
        "X-Cache-Hits": str(result.hits),
    }
    if result.expires_at is not None:
        headers["X-Cache-Expires"] = str(result.expires_at)
    return {"code": 200, "status": "OK", "data": result.data}, headers


@api_bp.route('/metrics')
@limiter.exempt
def metrics():
    return generate_latest(), 200, {'Content-Type': 'text/plain; version=0.0.4; charset=utf-8'}


@api_bp.route('/timings/<string:date>')
@api_bp.arguments(TimingsArgsSchema, location='query')
@api_bp.response(200, PrayerTimesResponseSchema, description="Prayer times for the day.")
@api_bp.alt_response(400, schema=MessageSchema, description="Invalid date, coordinates or method.")
@api_bp.alt_response(502, schema=MessageSchema, description="The prayer time provider returned an unusable response.")
@api_bp.alt_response(503, schema=MessageSchema, description="The prayer time provider is unavailable.")
@api_bp.alt_response(504, schema=MessageSchema, description="The prayer time provider timed out.")
def timings(args: Dict[str, Any], date: str):
    """
    Get prayer times for a date at a coordinate.

    Served from the cache while the queried day has not ended at the location;
    otherwise fetched from the prayer time provider and cached until local midnight.
    """
    date_obj = _parse_date_or_abort(date)
    force_refresh = _ensure_refresh_allowed(args)
    try:
        result = get_timings_for_coordinates(
            date_obj, args['latitude'], args['longitude'],
            method_id=args.get('method'), school=args.get('school'),
            force_refresh=force_refresh,
        )
    except PrayerTimeServiceError as e:
        _abort_for(e)
    return _envelope(result)


@api_bp.route('/timingsByCity/<string:date>')
@api_bp.arguments(CityTimingsArgsSchema, location='query')
@api_bp.response(200, PrayerTimesResponseSchema, description="Prayer times for the day.")
@api_bp.alt_response(400, schema=MessageSchema, description="Invalid date, city or method.")
@api_bp.alt_response(502, schema=MessageSchema, description="The prayer time provider returned an unusable response.")
@api_bp.alt_response(503, schema=MessageSchema, description="The prayer time provider is unavailable.")
@api_bp.alt_response(504, schema=MessageSchema, description="The prayer time provider timed out.")
def timings_by_city(args: Dict[str, Any], date: str):
    """Get prayer times for a date in a city."""
    date_obj = _parse_date_or_abort(date)
    force_refresh = _ensure_refresh_allowed(args)
    try:
        result = get_timings_for_city(
            date_obj, args['city'], args['country'],
            method_id=args.get('method'), school=args.get('school'),
            force_refresh=force_refresh,
        )
    except PrayerTimeServiceError as e:
        _abort_for(e)
    return _envelope(result)


@api_bp.route('/gToH/<string:date>')
@api_bp.response(200, HijriResponseSchema, description="The Hijri date for the Gregorian date.")
@api_bp.alt_response(400, schema=MessageSchema, description="Invalid date.")
@api_bp.alt_response(503, schema=MessageSchema, description="The prayer time provider is unavailable.")
def gregorian_to_hijri(date: str):
    """Convert a Gregorian date to the Hijri calendar."""
    date_obj = _parse_date_or_abort(date)
    try:
        result = convert_gregorian_to_hijri(date_obj)
    except PrayerTimeServiceError as e:
        _abort_for(e)
    return _envelope(result)


@api_bp.route('/calendar/<int:year>/<int:month>')
@limiter.limit(calendar_rate_limit)
@api_bp.arguments(CalendarArgsSchema, location='query')
@api_bp.response(200, CalendarResponseSchema, description="Prayer times for every day of the month.")
@api_bp.alt_response(400, schema=MessageSchema, description="Invalid month, coordinates or method.")
@api_bp.alt_response(503, schema=MessageSchema, description="The prayer time provider is unavailable.")
@api_bp.alt_response(504, schema=MessageSchema, description="The prayer time provider timed out.")
def monthly_calendar(args: Dict[str, Any], year: int, month: int):
    """
    Get a month of prayer times at a coordinate.

    Heavier than a single day upstream, so it carries its own, stricter rate limit.
    """
    try:
        result = get_monthly_calendar(
            year, month, args['latitude'], args['longitude'],
            method_id=args.get('method'), school=args.get('school'),
        )
    except PrayerTimeServiceError as e:
        _abort_for(e)
    return _envelope(result)


@api_bp.route('/qibla')
@api_bp.arguments(QiblaArgsSchema, location='query')
@api_bp.response(200, QiblaResponseSchema, description="Qibla direction in degrees from true north.")
@api_bp.alt_response(503, schema=MessageSchema, description="The prayer time provider is unavailable.")
def qibla(args: Dict[str, Any]):
    """Get the Qibla direction for a coordinate."""
    try:
        result = get_qibla_direction(args['latitude'], args['longitude'])
    except PrayerTimeServiceError as e:
        _abort_for(e)
    return _envelope(result)


@api_bp.route('/cache/location', methods=['DELETE'])
@tier_required('CACHE_ADMIN_TIERS')
@api_bp.arguments(LocationInvalidationArgsSchema, location='query')
@api_bp.response(200, InvalidationResponseSchema, description="Cached entries for the location were removed.")
@api_bp.alt_response(403, schema=MessageSchema, description="The caller's tier may not administer the cache.")
@api_bp.alt_response(503, schema=MessageSchema, description="The cache is unavailable.")
def invalidate_location_cache(args: Dict[str, Any]):
    """
    Invalidate every cached day and calendar for one location.

    Identify the location by latitude/longitude or by city/country, exactly as it is queried.
    """
    try:
        outcome = invalidate_cached_location(
            latitude=args.get('latitude'), longitude=args.get('longitude'),
            city=args.get('city'), country=args.get('country'),
        )
    except PrayerTimeServiceError as e:
        _abort_for(e)
    current_app.logger.info(f"Caller {get_current_caller().identity} invalidated {outcome['invalidated']} entries for '{outcome['location']}'.")
    return {"code": 200, "status": "OK", "data": outcome}


@api_bp.route('/quota')
@limiter.exempt
@api_bp.response(200, QuotaSchema, description="The caller's tier and rate limits.")
def quota():
    """Show which tier the caller is in and the limits that apply to it."""
    caller = get_current_caller()
    return {
        "tier": caller.tier,
        "limits": [limit.strip() for limit in caller_tier_limit().split(';') if limit.strip()],
        "calendar_limit": calendar_rate_limit(),
    }
