# prayer_gateway/services/prayer_time/exceptions.py
"""
Errors raised by the prayer time services. Each carries the HTTP status the
routes answer with, so the translation lives in one place.
"""


class PrayerTimeServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(PrayerTimeServiceError):
    """The request itself is unusable (bad coordinates, date, month, method...)."""
    status_code = 400


class UpstreamError(PrayerTimeServiceError):
    """The upstream provider answered, but not with anything usable."""
    status_code = 502


class UpstreamRejectedError(UpstreamError):
    """The upstream provider refused the request as invalid (HTTP 4xx)."""
    status_code = 400


class UpstreamUnavailableError(UpstreamError):
    """The upstream provider could not be reached or kept failing after retries."""
    status_code = 503


class UpstreamTimeoutError(UpstreamError):
    status_code = 504


class CacheUnavailableError(PrayerTimeServiceError):
    """The cache backend failed on an operation that cannot fall back to a miss."""
    status_code = 503
