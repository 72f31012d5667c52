# This module defines the base interface for all prayer time API adapters.
from abc import ABC, abstractmethod


class BasePrayerAdapter(ABC):
    """
    Abstract base class for prayer time API adapters. Adapters return the `data`
    member of the provider's response and raise the errors defined in
    services/prayer_time/exceptions.py on failure; they never return None.
    """

    name = "BasePrayerAdapter"

    def __init__(self, base_url, api_key=None):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key

    @abstractmethod
    def fetch_timings(self, date_obj, latitude, longitude, method_id, school):
        """Fetches prayer times for a single day at a coordinate."""
        pass

    @abstractmethod
    def fetch_timings_by_city(self, date_obj, city, country, method_id, school):
        """Fetches prayer times for a single day for a city/country pair."""
        pass

    @abstractmethod
    def fetch_monthly_calendar(self, year, month, latitude, longitude, method_id, school):
        """Fetches one month of daily prayer times at a coordinate."""
        pass

    @abstractmethod
    def convert_gregorian_to_hijri(self, date_obj):
        """Converts a Gregorian date to its Hijri counterpart."""
        pass

    @abstractmethod
    def fetch_qibla(self, latitude, longitude):
        """Fetches the Qibla direction for a coordinate."""
        pass
