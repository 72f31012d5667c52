# tests/test_api_routes.py

import pytest

from prayer_gateway.services.prayer_time.exceptions import (
    UpstreamError,
    UpstreamRejectedError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)

TIMINGS_URL = '/api/timings/10-03-2099?latitude=24.86&longitude=67.01'


def test_timings_miss_then_hit(test_client, mock_adapter):
    first = test_client.get(TIMINGS_URL)
    second = test_client.get(TIMINGS_URL)

    assert first.status_code == 200
    assert first.json['code'] == 200
    assert first.json['status'] == "OK"
    assert first.json['data']['timings']['Fajr'] == "04:12"
    assert first.json['data']['date']['hijri']['month']['en'] == "Dhū al-Qaʿdah"
    assert first.headers['X-Cache'] == "MISS"

    assert second.status_code == 200
    assert second.headers['X-Cache'] == "HIT"
    assert second.headers['X-Cache-Hits'] == "1"
    assert second.headers['X-Cache-Expires'] == first.headers['X-Cache-Expires']
    mock_adapter.fetch_timings.assert_called_once()


def test_timings_accepts_iso_dates(test_client, mock_adapter):
    response = test_client.get('/api/timings/2099-03-10?latitude=24.86&longitude=67.01&method=2&school=1')
    assert response.status_code == 200
    assert response.json['data']['method']['id'] == 2


def test_timings_invalid_date(test_client, mock_adapter):
    response = test_client.get('/api/timings/2099-31-31?latitude=24.86&longitude=67.01')
    assert response.status_code == 400
    assert "Invalid date" in response.json['message']
    mock_adapter.fetch_timings.assert_not_called()


@pytest.mark.parametrize("query", [
    "longitude=67.01",
    "latitude=91&longitude=67.01",
    "latitude=24.86&longitude=-190",
    "latitude=24.86&longitude=67.01&method=6",
    "latitude=24.86&longitude=67.01&school=3",
])
def test_timings_argument_validation(test_client, mock_adapter, query):
    response = test_client.get(f'/api/timings/10-03-2099?{query}')
    assert response.status_code == 422


@pytest.mark.parametrize("error, status_code", [
    (UpstreamRejectedError("Prayer time provider rejected the request: bad"), 400),
    (UpstreamError("Prayer time provider returned an unexpected response."), 502),
    (UpstreamUnavailableError("Prayer time provider is unreachable."), 503),
    (UpstreamTimeoutError("Prayer time provider timed out."), 504),
])
def test_upstream_errors_are_translated(test_client, mock_adapter, error, status_code):
    mock_adapter.fetch_timings.side_effect = error
    response = test_client.get(TIMINGS_URL)
    assert response.status_code == status_code
    assert response.json['message'] == error.message


def test_refresh_requires_a_privileged_tier(test_client, mock_adapter, standard_headers, premium_headers):
    test_client.get(TIMINGS_URL)

    denied = test_client.get(f'{TIMINGS_URL}&refresh=true', headers=standard_headers)
    allowed = test_client.get(f'{TIMINGS_URL}&refresh=true', headers=premium_headers)

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert allowed.headers['X-Cache'] == "MISS"
    assert mock_adapter.fetch_timings.call_count == 2


def test_unknown_api_key_is_rejected(test_client, mock_adapter):
    response = test_client.get(TIMINGS_URL, headers={'X-API-Key': 'not-a-key'})
    assert response.status_code == 401
    mock_adapter.fetch_timings.assert_not_called()


def test_timings_by_city(test_client, mock_adapter):
    response = test_client.get('/api/timingsByCity/10-03-2099?city=Karachi&country=Pakistan')
    assert response.status_code == 200
    assert response.json['data']['timezone'] == "Asia/Karachi"
    mock_adapter.fetch_timings_by_city.assert_called_once()


def test_timings_by_city_requires_country(test_client, mock_adapter):
    response = test_client.get('/api/timingsByCity/10-03-2099?city=Karachi')
    assert response.status_code == 422


def test_gregorian_to_hijri(test_client, mock_adapter):
    response = test_client.get('/api/gToH/10-03-2099')
    assert response.status_code == 200
    assert response.json['data']['gregorian'] == "10-03-2099"
    assert response.json['data']['hijri']['weekday'] == "Al Thalaata"


def test_monthly_calendar(test_client, mock_adapter, sample_day):
    mock_adapter.fetch_monthly_calendar.return_value = [sample_day] * 31
    response = test_client.get('/api/calendar/2099/3?latitude=24.86&longitude=67.01')
    assert response.status_code == 200
    assert len(response.json['data']) == 31
    assert response.headers['X-Cache'] == "MISS"


def test_monthly_calendar_invalid_month(test_client, mock_adapter):
    response = test_client.get('/api/calendar/2099/13?latitude=24.86&longitude=67.01')
    assert response.status_code == 400


def test_timings_for_the_last_supported_date(test_client, mock_adapter):
    response = test_client.get('/api/timings/31-12-9999?latitude=24.86&longitude=67.01')
    assert response.status_code == 400
    assert "out of the supported range" in response.json['message']
    mock_adapter.fetch_timings.assert_not_called()


def test_monthly_calendar_for_the_last_supported_month(test_client, mock_adapter):
    response = test_client.get('/api/calendar/9999/12?latitude=24.86&longitude=67.01')
    assert response.status_code == 400
    mock_adapter.fetch_monthly_calendar.assert_not_called()


def test_qibla(test_client, mock_adapter):
    response = test_client.get('/api/qibla?latitude=24.86&longitude=67.01')
    assert response.status_code == 200
    assert response.json['data']['direction'] == 267.4


@pytest.mark.parametrize("headers", [{}, {'X-API-Key': 'test-standard-key'}, {'X-API-Key': 'test-premium-key'}])
def test_cache_invalidation_is_restricted(test_client, mock_adapter, headers):
    response = test_client.delete('/api/cache/location?latitude=24.86&longitude=67.01', headers=headers)
    assert response.status_code == 403


def test_cache_invalidation_by_internal_caller(test_client, mock_adapter, internal_headers):
    test_client.get(TIMINGS_URL)
    test_client.get('/api/timings/11-03-2099?latitude=24.86&longitude=67.01')

    response = test_client.delete('/api/cache/location?latitude=24.86&longitude=67.01', headers=internal_headers)

    assert response.status_code == 200
    assert response.json['data'] == {"location": "coords:24.86:67.01", "invalidated": 2}
    assert test_client.get(TIMINGS_URL).headers['X-Cache'] == "MISS"


def test_cache_invalidation_requires_a_location(test_client, internal_headers):
    response = test_client.delete('/api/cache/location?city=Karachi', headers=internal_headers)
    assert response.status_code == 422


def test_quota_reports_the_callers_tier(test_client, premium_headers):
    anonymous = test_client.get('/api/quota')
    premium = test_client.get('/api/quota', headers=premium_headers)

    assert anonymous.status_code == 200
    assert anonymous.json == {"tier": "anonymous", "limits": ["1000 per minute"], "calendar_limit": "1000 per minute"}
    assert premium.json['tier'] == "premium"


def test_metrics_endpoint(test_client, mock_adapter):
    test_client.get(TIMINGS_URL)
    response = test_client.get('/api/metrics')
    assert response.status_code == 200
    assert b'prayer_gateway_cache_misses_total' in response.data
