# This module turns raw upstream payloads into the gateway's prayer-time records.
from typing import Any, Dict, List, Optional

from flask import current_app

from .exceptions import UpstreamError
from prayer_gateway.services.helpers.constants import CALCULATION_METHODS, PRAYER_NAMES
from prayer_gateway.utils.time_utils import format_time_internal, parse_time_str


def _extract_timings(raw_timings: Dict[str, Any]) -> Dict[str, str]:
    """Keeps the six fixed prayer times, normalized to HH:MM without timezone labels."""
    timings = {}
    for prayer_name in PRAYER_NAMES:
        time_obj = parse_time_str(raw_timings.get(prayer_name))
        if time_obj is None:
            current_app.logger.error(f"Data Processor: Missing or invalid '{prayer_name}' in upstream timings: {raw_timings.get(prayer_name)!r}")
            raise UpstreamError(f"Prayer time provider returned no valid time for {prayer_name}.")
        timings[prayer_name] = format_time_internal(time_obj)
    return timings


def _extract_hijri(raw_hijri: Dict[str, Any]) -> Dict[str, Any]:
    month = raw_hijri.get('month') or {}
    return {
        "date": raw_hijri.get('date'),
        "day": raw_hijri.get('day'),
        "month": {
            "number": month.get('number'),
            "en": month.get('en'),
            "ar": month.get('ar'),
        },
        "year": raw_hijri.get('year'),
    }


def build_prayer_record(raw_day: Dict[str, Any], method_id: int, school: int, latitude: Optional[float] = None, longitude: Optional[float] = None) -> Dict[str, Any]:
    """
    Builds a prayer-time record from one upstream day object
    ({timings, date: {readable, gregorian, hijri}, meta}).
    The record carries the six prayer times, the Gregorian/Hijri date pair and
    the calculation method used.
    """
    if not isinstance(raw_day, dict) or not isinstance(raw_day.get('timings'), dict):
        raise UpstreamError("Prayer time provider returned a day without timings.")

    raw_date = raw_day.get('date') or {}
    gregorian = (raw_date.get('gregorian') or {}).get('date')
    if not gregorian:
        raise UpstreamError("Prayer time provider returned a day without a Gregorian date.")

    meta = raw_day.get('meta') or {}
    upstream_method = meta.get('method') or {}

    return {
        "timings": _extract_timings(raw_day['timings']),
        "date": {
            "readable": raw_date.get('readable'),
            "gregorian": gregorian,
            "hijri": _extract_hijri(raw_date.get('hijri') or {}),
        },
        "method": {
            "id": method_id,
            "name": upstream_method.get('name') or CALCULATION_METHODS.get(method_id),
        },
        "school": school,
        "timezone": meta.get('timezone'),
        "latitude": meta.get('latitude', latitude),
        "longitude": meta.get('longitude', longitude),
    }


def build_calendar_records(raw_days: List[Dict[str, Any]], method_id: int, school: int, latitude: float, longitude: float) -> List[Dict[str, Any]]:
    return [build_prayer_record(day, method_id, school, latitude, longitude) for day in raw_days]


def build_hijri_conversion(raw_conversion: Dict[str, Any]) -> Dict[str, Any]:
    """Builds the Gregorian -> Hijri conversion record from an upstream gToH payload."""
    raw_hijri = raw_conversion.get('hijri') if isinstance(raw_conversion, dict) else None
    raw_gregorian = raw_conversion.get('gregorian') if isinstance(raw_conversion, dict) else None
    if not raw_hijri or not raw_gregorian:
        raise UpstreamError("Prayer time provider returned an incomplete Hijri conversion.")

    hijri = _extract_hijri(raw_hijri)
    hijri["weekday"] = (raw_hijri.get('weekday') or {}).get('en')
    hijri["holidays"] = raw_hijri.get('holidays') or []
    return {
        "gregorian": raw_gregorian.get('date'),
        "hijri": hijri,
    }


def build_qibla_record(raw_qibla: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return {
            "latitude": float(raw_qibla['latitude']),
            "longitude": float(raw_qibla['longitude']),
            "direction": float(raw_qibla['direction']),
        }
    except (KeyError, TypeError, ValueError):
        raise UpstreamError("Prayer time provider returned an invalid Qibla direction.")
