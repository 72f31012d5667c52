# prayer_gateway/services/api_adapters/aladhan_adapter.py

import requests
from flask import current_app # To access app.logger
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .base_adapter import BasePrayerAdapter
from prayer_gateway.services.prayer_time.exceptions import (
    UpstreamError,
    UpstreamRejectedError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from prayer_gateway.metrics import API_REQUESTS_TOTAL, API_REQUEST_DURATION_SECONDS
from prayer_gateway.utils.time_utils import format_api_date

RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


class AlAdhanAdapter(BasePrayerAdapter):
    """
    API Adapter for AlAdhan.com Prayer Times API.

    A single requests.Session is reused for every call. Connection errors, read
    errors and the status codes in RETRY_STATUS_CODES are retried with exponential
    back-off before the call is reported as failed.
    """

    name = "AlAdhanAdapter"

    def __init__(self, base_url, api_key=None, timeout=10, calendar_timeout=30, max_retries=3, backoff_factor=0.5):
        super().__init__(base_url, api_key)
        self.timeout = timeout
        self.calendar_timeout = calendar_timeout

        retry_policy = Retry(
            total=max_retries,
            connect=max_retries,
            read=max_retries,
            status=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=RETRY_STATUS_CODES,
            allowed_methods=frozenset(["GET"]),
            respect_retry_after_header=True,
            # Hand the last response back instead of raising, so its envelope can be inspected.
            raise_on_status=False,
        )
        self.session = requests.Session()
        http_adapter = HTTPAdapter(max_retries=retry_policy)
        self.session.mount("https://", http_adapter)
        self.session.mount("http://", http_adapter)
        if api_key:
            self.session.headers["X-API-Key"] = api_key

    def fetch_timings(self, date_obj, latitude, longitude, method_id, school):
        """
        Fetches prayer times for a single day from the AlAdhan.com API.
        """
        date_str = format_api_date(date_obj)
        current_app.logger.info(f"AlAdhanAdapter: Fetching daily timings for {date_str} at ({latitude}, {longitude})")
        params = {
            "latitude": str(latitude),
            "longitude": str(longitude),
            "method": method_id,
            "school": school,
        }
        return self._get("timings", f"/timings/{date_str}", params=params)

    def fetch_timings_by_city(self, date_obj, city, country, method_id, school):
        date_str = format_api_date(date_obj)
        current_app.logger.info(f"AlAdhanAdapter: Fetching daily timings for {date_str} in '{city}, {country}'")
        params = {
            "city": city,
            "country": country,
            "method": method_id,
            "school": school,
        }
        return self._get("timingsByCity", f"/timingsByCity/{date_str}", params=params)

    def fetch_monthly_calendar(self, year, month, latitude, longitude, method_id, school):
        """
        Fetches a month's prayer time calendar. Uses the longer calendar timeout
        as the response covers up to 31 days.
        """
        current_app.logger.info(f"AlAdhanAdapter: Fetching calendar for {year}-{month:02d} at ({latitude}, {longitude}) with method:{method_id}, school:{school}")
        params = {
            "latitude": str(latitude),
            "longitude": str(longitude),
            "method": method_id,
            "school": school,
        }
        data = self._get("calendar", f"/calendar/{year}/{month}", params=params, timeout=self.calendar_timeout)
        if not isinstance(data, list) or not data:
            current_app.logger.error(f"AlAdhanAdapter: API returned no calendar days for {year}-{month:02d}.")
            raise UpstreamError(f"Prayer time provider returned an empty calendar for {year}-{month:02d}.")
        return data

    def convert_gregorian_to_hijri(self, date_obj):
        date_str = format_api_date(date_obj)
        current_app.logger.info(f"AlAdhanAdapter: Converting {date_str} to Hijri")
        return self._get("gToH", f"/gToH/{date_str}")

    def fetch_qibla(self, latitude, longitude):
        current_app.logger.info(f"AlAdhanAdapter: Fetching Qibla direction for ({latitude}, {longitude})")
        return self._get("qibla", f"/qibla/{latitude}/{longitude}")

    def _get(self, endpoint_name, path, params=None, timeout=None):
        """
        Performs a GET against the provider and unwraps the {code, status, data}
        envelope. Raises an Upstream* error for every failure mode.
        """
        url = f"{self.base_url}{path}"
        current_app.logger.debug(f"AlAdhanAdapter: GET {url} with params: {params}")

        try:
            with API_REQUEST_DURATION_SECONDS.labels(adapter_name=self.name, endpoint=endpoint_name).time():
                response = self.session.get(url, params=params, timeout=timeout or self.timeout)
        except requests.exceptions.Timeout as e:
            self._count(endpoint_name, 'timeout')
            current_app.logger.error(f"AlAdhanAdapter: Timeout error on {endpoint_name} ({url}).")
            raise UpstreamTimeoutError(f"Prayer time provider timed out on '{endpoint_name}'.") from e
        except requests.exceptions.RequestException as e:
            self._count(endpoint_name, 'unavailable')
            current_app.logger.error(f"AlAdhanAdapter: RequestException on {endpoint_name}: {e}", exc_info=True)
            raise UpstreamUnavailableError(f"Prayer time provider is unreachable on '{endpoint_name}'.") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 500:
            self._count(endpoint_name, 'http_error')
            current_app.logger.error(f"AlAdhanAdapter: HTTP {response.status_code} on {endpoint_name} after retries.")
            raise UpstreamUnavailableError(f"Prayer time provider failed with HTTP {response.status_code}.")

        envelope_code = payload.get('code') if isinstance(payload, dict) else None
        if response.status_code >= 400 or (isinstance(envelope_code, int) and 400 <= envelope_code < 500):
            self._count(endpoint_name, 'rejected')
            reason = self._describe_rejection(payload, response.status_code)
            current_app.logger.warning(f"AlAdhanAdapter: Request rejected on {endpoint_name}: {reason}")
            raise UpstreamRejectedError(f"Prayer time provider rejected the request: {reason}")

        if envelope_code != 200 or payload.get('data') is None:
            self._count(endpoint_name, 'invalid')
            current_app.logger.error(f"AlAdhanAdapter: Unexpected envelope on {endpoint_name}. Code: {envelope_code}")
            raise UpstreamError(f"Prayer time provider returned an unexpected response on '{endpoint_name}'.")

        self._count(endpoint_name, 'success')
        return payload['data']

    def _count(self, endpoint_name, status):
        API_REQUESTS_TOTAL.labels(adapter_name=self.name, endpoint=endpoint_name, status=status).inc()

    @staticmethod
    def _describe_rejection(payload, http_status):
        if isinstance(payload, dict):
            if isinstance(payload.get('data'), str):
                return payload['data']
            if payload.get('status'):
                return str(payload['status'])
        return f"HTTP {http_status}"
