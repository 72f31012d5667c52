# tests/conftest.py

import copy
from unittest.mock import MagicMock

import fakeredis
import pytest

from prayer_gateway import create_app
from prayer_gateway.extensions import limiter, redis_client

# One upstream day object, shaped like AlAdhan's /timings response data.
SAMPLE_DAY = {
    "timings": {
        "Fajr": "04:12", "Sunrise": "05:40", "Dhuhr": "12:09", "Asr": "15:51",
        "Sunset": "18:37", "Maghrib": "18:37", "Isha": "20:00", "Imsak": "04:02",
        "Midnight": "00:09",
    },
    "date": {
        "readable": "10 Mar 2099",
        "timestamp": "4076323200",
        "gregorian": {"date": "10-03-2099", "format": "DD-MM-YYYY", "day": "10"},
        "hijri": {
            "date": "18-11-1521", "day": "18",
            "weekday": {"en": "Al Thalaata", "ar": "الثلاثاء"},
            "month": {"number": 11, "en": "Dhū al-Qaʿdah", "ar": "ذوالقعدة"},
            "year": "1521", "holidays": [],
        },
    },
    "meta": {
        "latitude": 24.86, "longitude": 67.01, "timezone": "Asia/Karachi",
        "method": {"id": 3, "name": "Muslim World League"},
        "school": "STANDARD",
    },
}

SAMPLE_HIJRI = {
    "gregorian": {"date": "10-03-2099", "format": "DD-MM-YYYY"},
    "hijri": {
        "date": "18-11-1521", "day": "18",
        "weekday": {"en": "Al Thalaata", "ar": "الثلاثاء"},
        "month": {"number": 11, "en": "Dhū al-Qaʿdah", "ar": "ذوالقعدة"},
        "year": "1521", "holidays": [],
    },
}

SAMPLE_QIBLA = {"latitude": 24.86, "longitude": 67.01, "direction": 267.4}


@pytest.fixture(scope='session')
def app():
    """Session-wide application for testing."""
    app = create_app('testing')
    return app


@pytest.fixture(autouse=True)
def fake_redis(app):
    """
    Replaces the Redis connection with an in-process fake for every test,
    and clears the rate-limit counters.
    """
    fake = fakeredis.FakeRedis(decode_responses=True)
    original = redis_client.redis_client
    redis_client.redis_client = fake
    with app.app_context():
        limiter.reset()
    yield fake
    fake.flushall()
    redis_client.redis_client = original


@pytest.fixture(scope='function')
def test_client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture(scope='function')
def app_context(app):
    with app.app_context():
        yield app


@pytest.fixture
def sample_day():
    return copy.deepcopy(SAMPLE_DAY)


@pytest.fixture
def sample_hijri():
    return copy.deepcopy(SAMPLE_HIJRI)


@pytest.fixture
def sample_qibla():
    return dict(SAMPLE_QIBLA)


@pytest.fixture
def mock_adapter(mocker, sample_day, sample_hijri, sample_qibla):
    """Mocks the upstream adapter the gateway service talks to."""
    adapter = MagicMock()
    adapter.fetch_timings.return_value = sample_day
    adapter.fetch_timings_by_city.return_value = sample_day
    adapter.convert_gregorian_to_hijri.return_value = sample_hijri
    adapter.fetch_qibla.return_value = sample_qibla
    mocker.patch('prayer_gateway.services.prayer_time_service.get_selected_api_adapter', return_value=adapter)
    return adapter


@pytest.fixture
def standard_headers():
    return {'X-API-Key': 'test-standard-key'}


@pytest.fixture
def premium_headers():
    return {'X-API-Key': 'test-premium-key'}


@pytest.fixture
def internal_headers():
    return {'X-API-Key': 'test-internal-key'}
