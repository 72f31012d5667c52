# prayer_gateway/services/prayer_time/key_utils.py

import math
import re
from typing import Tuple

from flask import current_app

from .exceptions import InvalidRequestError
from prayer_gateway.services.helpers.constants import CALCULATION_METHODS, SCHOOLS

_WHITESPACE = re.compile(r"\s+")


def normalize_coordinates(latitude: float, longitude: float) -> Tuple[float, float]:
    """
    Validates a coordinate and rounds it to LOCATION_KEY_PRECISION decimal places,
    so nearby requests share one cache entry. -0.0 is folded into 0.0.
    """
    try:
        latitude = float(latitude)
        longitude = float(longitude)
    except (TypeError, ValueError):
        raise InvalidRequestError("Latitude and longitude must be numbers.")

    if math.isnan(latitude) or math.isnan(longitude):
        raise InvalidRequestError("Latitude and longitude must be numbers.")
    if not -90.0 <= latitude <= 90.0:
        raise InvalidRequestError(f"Latitude {latitude} is out of range [-90, 90].")
    if not -180.0 <= longitude <= 180.0:
        raise InvalidRequestError(f"Longitude {longitude} is out of range [-180, 180].")

    precision = current_app.config.get('LOCATION_KEY_PRECISION', 2)
    return round(latitude, precision) + 0.0, round(longitude, precision) + 0.0


def normalize_place_name(name: str) -> str:
    """Trims, collapses inner whitespace and case-folds a city or country name."""
    if not name or not name.strip():
        raise InvalidRequestError("City and country must not be empty.")
    return _WHITESPACE.sub(" ", name.strip()).casefold()


def resolve_method_key(method_id=None, school=None) -> Tuple[int, int, str]:
    """
    Fills in the configured defaults and validates the calculation method and
    Asr school. Returns (method_id, school, composite_method_key).
    """
    if method_id is None:
        method_id = current_app.config.get('DEFAULT_CALCULATION_METHOD_ID', 3)
    if school is None:
        school = current_app.config.get('DEFAULT_SCHOOL', 0)

    if method_id not in CALCULATION_METHODS:
        raise InvalidRequestError(f"Unsupported calculation method: {method_id}.")
    if school not in SCHOOLS:
        raise InvalidRequestError(f"Unsupported school: {school}.")

    return method_id, school, f"{method_id}-{school}"


def location_key_for_coords(latitude: float, longitude: float) -> str:
    """Location key for an already normalized coordinate."""
    precision = current_app.config.get('LOCATION_KEY_PRECISION', 2)
    return f"coords:{latitude:.{precision}f}:{longitude:.{precision}f}"


def location_key_for_city(city: str, country: str) -> str:
    """Location key for an already normalized city/country pair."""
    return f"city:{country.replace(':', ' ')}:{city.replace(':', ' ')}"


def _schema_version() -> str:
    return current_app.config.get('CACHE_SCHEMA_VERSION', 'v1')


def generate_timings_cache_key(location_key: str, date_str: str, composite_method_key: str) -> str:
    """Generates a consistent Redis key for one day of prayer times."""
    return f"timings:{_schema_version()}:{location_key}:{date_str}:{composite_method_key}"


def generate_calendar_cache_key(location_key: str, year: int, month: int, composite_method_key: str) -> str:
    """Generates a consistent Redis key for a monthly prayer time calendar."""
    return f"calendar:{_schema_version()}:{location_key}:{year}-{month:02d}:{composite_method_key}"


def generate_location_index_key(location_key: str) -> str:
    """Redis set holding every cache key stored for one location."""
    return f"locindex:{_schema_version()}:{location_key}"


def generate_hijri_cache_key(date_str: str) -> str:
    return f"gtoh:{_schema_version()}:{date_str}"


def generate_qibla_cache_key(location_key: str) -> str:
    return f"qibla:{_schema_version()}:{location_key}"


def generate_lock_key(cache_key: str) -> str:
    # Lock keys don't need schema_version as they wrap a versioned cache key
    return f"lock:{cache_key}"
