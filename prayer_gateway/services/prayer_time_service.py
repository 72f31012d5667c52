import calendar
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
import datetime

from flask import current_app

from .prayer_time.api_adapter import get_selected_api_adapter
from .prayer_time.cache_layer import (
    acquire_fetch_lock,
    get_cached_entry,
    get_cached_json,
    invalidate_location,
    release_fetch_lock,
    set_cached_json,
    store_cache_entry,
    wait_for_cached_entry,
)
from .prayer_time.data_processor import (
    build_calendar_records,
    build_hijri_conversion,
    build_prayer_record,
    build_qibla_record,
)
from .prayer_time.exceptions import InvalidRequestError, PrayerTimeServiceError
from .prayer_time.key_utils import (
    generate_calendar_cache_key,
    generate_hijri_cache_key,
    generate_lock_key,
    generate_qibla_cache_key,
    generate_timings_cache_key,
    location_key_for_city,
    location_key_for_coords,
    normalize_coordinates,
    normalize_place_name,
    resolve_method_key,
)
from prayer_gateway.utils.time_utils import end_of_local_day_timestamp, end_of_local_month_timestamp, format_api_date


@dataclass
class GatewayResult:
    """What the gateway hands back to a route: the data plus how it was served."""
    data: Any
    cache_hit: bool
    hits: int = 0
    expires_at: Optional[int] = None


def _serve_cached_or_fetch(
    cache_key: str,
    location_key: str,
    cache_type: str,
    fetch: Callable[[], Any],
    expiry_for: Callable[[Any], int],
    force_refresh: bool = False,
) -> GatewayResult:
    """
    The core gateway flow: serve the cached result when valid, else fetch from the
    upstream, store and return it. Concurrent misses on the same key are collapsed
    by a short Redis lock; a request that loses the race waits briefly for the winner.
    """
    if not force_refresh:
        entry = get_cached_entry(cache_key, cache_type)
        if entry:
            return GatewayResult(entry.record, cache_hit=True, hits=entry.hits, expires_at=entry.expires_at)

    lock_key = generate_lock_key(cache_key)
    lock_acquired = acquire_fetch_lock(lock_key)
    if not lock_acquired and not force_refresh:
        current_app.logger.info(f"Lock for {lock_key} is already held. Waiting for the running fetch.")
        entry = wait_for_cached_entry(cache_key, lock_key, cache_type)
        if entry:
            return GatewayResult(entry.record, cache_hit=True, hits=entry.hits, expires_at=entry.expires_at)
        current_app.logger.info(f"No entry appeared for {cache_key} while waiting. Fetching directly.")

    try:
        record = fetch()
        expires_at = expiry_for(record)
        store_cache_entry(cache_key, location_key, record, expires_at, cache_type)
    finally:
        if lock_acquired:
            release_fetch_lock(lock_key)

    return GatewayResult(record, cache_hit=False, hits=0, expires_at=expires_at)


def _ensure_day_can_end(date_obj: datetime.date) -> None:
    """The last representable date has no following midnight, so it can never be cached or expired."""
    if date_obj >= datetime.date.max:
        raise InvalidRequestError(f"Date {date_obj.isoformat()} is out of the supported range.")


# --- Main Service Functions ---

def get_timings_for_coordinates(date_obj: datetime.date, latitude: float, longitude: float, method_id: Optional[int] = None, school: Optional[int] = None, force_refresh: bool = False) -> GatewayResult:
    """
    Prayer times for one day at a coordinate. The coordinate is normalized first
    and the upstream is queried with the normalized value, so every request that
    maps to the same location key receives the same record.
    """
    _ensure_day_can_end(date_obj)
    lat, lon = normalize_coordinates(latitude, longitude)
    method_id, school, composite_method_key = resolve_method_key(method_id, school)
    location_key = location_key_for_coords(lat, lon)
    cache_key = generate_timings_cache_key(location_key, format_api_date(date_obj), composite_method_key)

    def fetch() -> Dict[str, Any]:
        raw_day = get_selected_api_adapter().fetch_timings(date_obj, lat, lon, method_id, school)
        return build_prayer_record(raw_day, method_id, school, lat, lon)

    return _serve_cached_or_fetch(
        cache_key, location_key, 'timings', fetch,
        expiry_for=lambda record: end_of_local_day_timestamp(date_obj, record.get('timezone')),
        force_refresh=force_refresh,
    )


def get_timings_for_city(date_obj: datetime.date, city: str, country: str, method_id: Optional[int] = None, school: Optional[int] = None, force_refresh: bool = False) -> GatewayResult:
    """Prayer times for one day for a city/country pair."""
    _ensure_day_can_end(date_obj)
    normalized_city = normalize_place_name(city)
    normalized_country = normalize_place_name(country)
    method_id, school, composite_method_key = resolve_method_key(method_id, school)
    location_key = location_key_for_city(normalized_city, normalized_country)
    cache_key = generate_timings_cache_key(location_key, format_api_date(date_obj), composite_method_key)

    def fetch() -> Dict[str, Any]:
        raw_day = get_selected_api_adapter().fetch_timings_by_city(date_obj, normalized_city, normalized_country, method_id, school)
        return build_prayer_record(raw_day, method_id, school)

    return _serve_cached_or_fetch(
        cache_key, location_key, 'timings', fetch,
        expiry_for=lambda record: end_of_local_day_timestamp(date_obj, record.get('timezone')),
        force_refresh=force_refresh,
    )


def get_monthly_calendar(year: int, month: int, latitude: float, longitude: float, method_id: Optional[int] = None, school: Optional[int] = None, force_refresh: bool = False) -> GatewayResult:
    """
    A month of daily prayer-time records at a coordinate. The cached calendar
    expires when the month's last day ends locally.
    """
    if not 1 <= month <= 12:
        raise InvalidRequestError(f"Month {month} is out of range [1, 12].")
    if not datetime.MINYEAR <= year <= datetime.MAXYEAR:
        raise InvalidRequestError(f"Year {year} is out of range.")
    _ensure_day_can_end(datetime.date(year, month, calendar.monthrange(year, month)[1]))

    lat, lon = normalize_coordinates(latitude, longitude)
    method_id, school, composite_method_key = resolve_method_key(method_id, school)
    location_key = location_key_for_coords(lat, lon)
    cache_key = generate_calendar_cache_key(location_key, year, month, composite_method_key)

    def fetch() -> List[Dict[str, Any]]:
        raw_days = get_selected_api_adapter().fetch_monthly_calendar(year, month, lat, lon, method_id, school)
        return build_calendar_records(raw_days, method_id, school, lat, lon)

    return _serve_cached_or_fetch(
        cache_key, location_key, 'calendar', fetch,
        expiry_for=lambda records: end_of_local_month_timestamp(year, month, records[0].get('timezone')),
        force_refresh=force_refresh,
    )


def convert_gregorian_to_hijri(date_obj: datetime.date) -> GatewayResult:
    """Gregorian -> Hijri conversion. Independent of location, cached with a fixed TTL."""
    date_str = format_api_date(date_obj)
    cache_key = generate_hijri_cache_key(date_str)

    cached = get_cached_json(cache_key, 'hijri')
    if cached:
        return GatewayResult(cached, cache_hit=True)

    conversion = build_hijri_conversion(get_selected_api_adapter().convert_gregorian_to_hijri(date_obj))
    set_cached_json(cache_key, conversion, current_app.config['HIJRI_CACHE_TTL_SECONDS'], 'hijri')
    return GatewayResult(conversion, cache_hit=False)


def get_qibla_direction(latitude: float, longitude: float) -> GatewayResult:
    """Compass bearing towards the Kaaba from a coordinate, cached with a fixed TTL."""
    lat, lon = normalize_coordinates(latitude, longitude)
    cache_key = generate_qibla_cache_key(location_key_for_coords(lat, lon))

    cached = get_cached_json(cache_key, 'qibla')
    if cached:
        return GatewayResult(cached, cache_hit=True)

    qibla = build_qibla_record(get_selected_api_adapter().fetch_qibla(lat, lon))
    set_cached_json(cache_key, qibla, current_app.config['QIBLA_CACHE_TTL_SECONDS'], 'qibla')
    return GatewayResult(qibla, cache_hit=False)


def invalidate_cached_location(latitude: Optional[float] = None, longitude: Optional[float] = None, city: Optional[str] = None, country: Optional[str] = None) -> Dict[str, Any]:
    """
    Drops every cached day and calendar stored for one location, identified
    either by coordinates or by a city/country pair.
    """
    if latitude is not None and longitude is not None:
        location_key = location_key_for_coords(*normalize_coordinates(latitude, longitude))
    elif city and country:
        location_key = location_key_for_city(normalize_place_name(city), normalize_place_name(country))
    else:
        raise InvalidRequestError("Provide either latitude and longitude, or city and country.")

    removed = invalidate_location(location_key)
    return {"location": location_key, "invalidated": removed}


def warm_location_cache(latitude: float, longitude: float, start_date: datetime.date, days: int, method_id: Optional[int] = None, school: Optional[int] = None) -> Dict[str, int]:
    """
    Pre-fetches `days` consecutive days of prayer times for a coordinate, starting
    at `start_date`, so the first real requests are served from the cache.
    Days that fail are logged and counted; they do not stop the run.
    """
    max_days = current_app.config.get('WARM_CACHE_MAX_DAYS', 31)
    if not 1 <= days <= max_days:
        raise InvalidRequestError(f"Days must be between 1 and {max_days}.")
    if start_date > datetime.date.max - datetime.timedelta(days=days):
        raise InvalidRequestError(f"Cannot warm {days} days starting {start_date.isoformat()}: the range ends past the supported dates.")

    summary = {"fetched": 0, "cached": 0, "failed": 0}
    for offset in range(days):
        date_obj = start_date + datetime.timedelta(days=offset)
        try:
            result = get_timings_for_coordinates(date_obj, latitude, longitude, method_id, school)
        except InvalidRequestError:
            raise
        except PrayerTimeServiceError as e:
            current_app.logger.error(f"Cache warm-up failed for {format_api_date(date_obj)} at ({latitude}, {longitude}): {e}")
            summary["failed"] += 1
            continue
        summary["cached" if result.cache_hit else "fetched"] += 1
    return summary
