# tests/test_cache_layer.py

import datetime
import json

import pytest
from freezegun import freeze_time
from redis import exceptions as redis_exceptions

from prayer_gateway.services.prayer_time.cache_layer import (
    acquire_fetch_lock,
    get_cached_entry,
    get_cached_json,
    invalidate_location,
    release_fetch_lock,
    set_cached_json,
    store_cache_entry,
)
from prayer_gateway.services.prayer_time.exceptions import CacheUnavailableError

LOCATION = "coords:24.86:67.00"
INDEX_KEY = "locindex:v1:coords:24.86:67.00"
KEY = "timings:v1:coords:24.86:67.00:10-03-2099:3-0"
RECORD = {"timings": {"Fajr": "04:12"}, "date": {"gregorian": "10-03-2099"}}
# End of 10 March 2099 in Karachi (UTC+5).
END_OF_DAY = int(datetime.datetime(2099, 3, 10, 19, 0, tzinfo=datetime.timezone.utc).timestamp())


@freeze_time("2099-03-10 12:00:00")
def test_store_then_get_counts_hits(app_context, fake_redis):
    stored = store_cache_entry(KEY, LOCATION, RECORD, END_OF_DAY, 'timings')
    assert stored.hits == 0
    assert stored.expires_at == END_OF_DAY
    assert fake_redis.ttl(KEY) > 0

    first = get_cached_entry(KEY, 'timings')
    second = get_cached_entry(KEY, 'timings')

    assert first.record == RECORD
    assert first.hits == 1
    assert second.hits == 2
    assert second.location_key == LOCATION


@freeze_time("2099-03-10 12:00:00")
def test_get_missing_entry_is_a_miss(app_context):
    assert get_cached_entry(KEY, 'timings') is None


@freeze_time("2099-03-10 20:00:00")
def test_store_refuses_a_day_that_has_already_ended(app_context, fake_redis):
    assert store_cache_entry(KEY, LOCATION, RECORD, END_OF_DAY, 'timings') is None
    assert not fake_redis.exists(KEY)


def test_entry_is_not_served_after_its_day_ends(app_context, fake_redis):
    with freeze_time("2099-03-10 12:00:00"):
        store_cache_entry(KEY, LOCATION, RECORD, END_OF_DAY, 'timings')
        assert get_cached_entry(KEY, 'timings') is not None

    with freeze_time("2099-03-10 19:00:00"):
        assert get_cached_entry(KEY, 'timings') is None
        assert not fake_redis.exists(KEY)


@freeze_time("2099-03-10 12:00:00")
def test_store_replaces_entry_and_resets_hits(app_context):
    store_cache_entry(KEY, LOCATION, RECORD, END_OF_DAY, 'timings')
    get_cached_entry(KEY, 'timings')
    get_cached_entry(KEY, 'timings')

    updated = {"timings": {"Fajr": "04:13"}, "date": {"gregorian": "10-03-2099"}}
    store_cache_entry(KEY, LOCATION, updated, END_OF_DAY, 'timings')

    entry = get_cached_entry(KEY, 'timings')
    assert entry.record == updated
    assert entry.hits == 1


@freeze_time("2099-03-10 12:00:00")
def test_malformed_entry_is_discarded(app_context, fake_redis):
    fake_redis.hset(KEY, mapping={"record": "{not json", "created_at": "0", "expires_at": str(END_OF_DAY)})
    assert get_cached_entry(KEY, 'timings') is None
    assert not fake_redis.exists(KEY)


@freeze_time("2099-03-10 12:00:00")
def test_redis_read_failure_degrades_to_miss(app_context, fake_redis, mocker):
    mocker.patch.object(fake_redis, 'hgetall', side_effect=redis_exceptions.ConnectionError("down"))
    assert get_cached_entry(KEY, 'timings') is None


@freeze_time("2099-03-10 12:00:00")
def test_redis_write_failure_is_not_fatal(app_context, fake_redis, mocker):
    mocker.patch.object(fake_redis, 'pipeline', side_effect=redis_exceptions.ConnectionError("down"))
    assert store_cache_entry(KEY, LOCATION, RECORD, END_OF_DAY, 'timings') is None


@freeze_time("2099-03-10 12:00:00")
def test_invalidate_location_removes_only_that_location(app_context, fake_redis):
    other_day = KEY.replace("10-03-2099", "11-03-2099")
    other_method = KEY.replace(":3-0", ":2-1")
    calendar_key = "calendar:v1:coords:24.86:67.00:2099-03:3-0"
    elsewhere = "timings:v1:coords:51.51:-0.13:10-03-2099:3-0"

    for key in (KEY, other_day, other_method, calendar_key):
        store_cache_entry(key, LOCATION, RECORD, END_OF_DAY, 'timings')
    store_cache_entry(elsewhere, "coords:51.51:-0.13", RECORD, END_OF_DAY, 'timings')

    assert invalidate_location(LOCATION) == 4

    for key in (KEY, other_day, other_method, calendar_key):
        assert not fake_redis.exists(key)
    assert not fake_redis.exists("locindex:v1:coords:24.86:67.00")
    assert get_cached_entry(elsewhere, 'timings') is not None


def test_invalidate_unknown_location_removes_nothing(app_context):
    assert invalidate_location("city:nowhere:nothing") == 0


def test_invalidate_location_raises_when_cache_is_down(app_context, fake_redis, mocker):
    mocker.patch.object(fake_redis, 'zrange', side_effect=redis_exceptions.ConnectionError("down"))
    with pytest.raises(CacheUnavailableError):
        invalidate_location(LOCATION)


@freeze_time("2099-03-10 12:00:00")
def test_location_index_expires_with_its_latest_entry(app_context, fake_redis):
    next_day = KEY.replace("10-03-2099", "11-03-2099")
    store_cache_entry(next_day, LOCATION, RECORD, END_OF_DAY + 86400, 'timings')
    store_cache_entry(KEY, LOCATION, RECORD, END_OF_DAY, 'timings')

    index_ttl = fake_redis.ttl(INDEX_KEY)
    assert abs(index_ttl - fake_redis.ttl(next_day)) <= 1
    assert fake_redis.zscore(INDEX_KEY, KEY) == END_OF_DAY


def test_location_index_drops_entries_whose_day_ended(app_context, fake_redis):
    with freeze_time("2099-03-10 12:00:00") as frozen:
        for offset in range(5):
            day = datetime.date(2099, 3, 10) + datetime.timedelta(days=offset)
            key = KEY.replace("10-03-2099", day.strftime("%d-%m-%Y"))
            store_cache_entry(key, LOCATION, RECORD, END_OF_DAY + offset * 86400, 'timings')
            frozen.tick(datetime.timedelta(days=1))

    assert fake_redis.zrange(INDEX_KEY, 0, -1) == [KEY.replace("10-03-2099", "14-03-2099")]


@freeze_time("2099-03-10 12:00:00")
def test_entry_without_expiry_is_treated_as_a_miss(app_context, fake_redis):
    # What HINCRBY leaves behind when the entry expires between the read and the increment.
    fake_redis.hset(KEY, mapping={
        'record': json.dumps(RECORD),
        'created_at': '0',
        'expires_at': str(END_OF_DAY),
        'hits': '0',
        'location': LOCATION,
    })

    assert get_cached_entry(KEY, 'timings') is None
    assert not fake_redis.exists(KEY)


def test_fetch_lock_is_exclusive(app_context):
    lock_key = f"lock:{KEY}"
    assert acquire_fetch_lock(lock_key) is True
    assert acquire_fetch_lock(lock_key) is False
    release_fetch_lock(lock_key)
    assert acquire_fetch_lock(lock_key) is True


def test_fetch_lock_fails_open_when_redis_is_down(app_context, fake_redis, mocker):
    mocker.patch.object(fake_redis, 'set', side_effect=redis_exceptions.ConnectionError("down"))
    assert acquire_fetch_lock(f"lock:{KEY}") is True


def test_json_values_round_trip_with_ttl(app_context, fake_redis):
    set_cached_json("gtoh:v1:10-03-2099", {"hijri": {"date": "18-11-1521"}}, 3600, 'hijri')
    assert get_cached_json("gtoh:v1:10-03-2099", 'hijri') == {"hijri": {"date": "18-11-1521"}}
    assert 0 < fake_redis.ttl("gtoh:v1:10-03-2099") <= 3600
    assert get_cached_json("gtoh:v1:11-03-2099", 'hijri') is None
