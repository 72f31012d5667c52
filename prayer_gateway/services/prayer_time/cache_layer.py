# This module will contain all functions related to caching prayer times.
import json
import time
from dataclasses import dataclass
from typing import Any, Optional

from flask import current_app
from redis import exceptions as redis_exceptions

from .exceptions import CacheUnavailableError
from .key_utils import generate_location_index_key
from prayer_gateway.extensions import redis_client
from prayer_gateway.metrics import CACHE_HITS, CACHE_INVALIDATIONS, CACHE_MISSES, CACHE_STORES
from prayer_gateway.utils.time_utils import now_timestamp

LOCK_POLL_INTERVAL_SECONDS = 0.1


@dataclass
class CacheEntry:
    """
    One cached result. Entries are Redis hashes with the fields below and a Redis
    expiry equal to `expires_at`, which is aligned to the end of the local day
    (or month) the record describes.
    """
    record: Any
    created_at: float
    expires_at: int
    hits: int
    location_key: str


def _read_entry(cache_key: str) -> Optional[CacheEntry]:
    """
    Reads and decodes an entry without counting a hit. Entries whose expiry has
    passed are deleted and reported as missing, even if Redis has not evicted them yet.
    """
    try:
        fields = redis_client.hgetall(cache_key)
    except redis_exceptions.RedisError as e:
        current_app.logger.error(f"Redis HGETALL failed for key {cache_key}: {e}", exc_info=True)
        return None

    if not fields:
        return None

    try:
        entry = CacheEntry(
            record=json.loads(fields['record']),
            created_at=float(fields['created_at']),
            expires_at=int(fields['expires_at']),
            hits=int(fields.get('hits', 0)),
            location_key=fields.get('location', ''),
        )
    except (KeyError, ValueError, TypeError) as e:
        current_app.logger.warning(f"Discarding malformed cache entry {cache_key}: {e}")
        _delete_quietly(cache_key)
        return None

    if entry.expires_at <= now_timestamp():
        current_app.logger.debug(f"Cache entry {cache_key} is past its day boundary. Discarding.")
        _delete_quietly(cache_key)
        return None

    return entry


def get_cached_entry(cache_key: str, cache_type: str) -> Optional[CacheEntry]:
    """
    Returns the live entry for `cache_key` and increments its hit counter,
    or None on a miss. Redis failures are logged and treated as a miss.
    """
    entry = _read_entry(cache_key)
    if entry is None:
        CACHE_MISSES.labels(cache_type=cache_type).inc()
        current_app.logger.info(f"Cache MISS for {cache_key}.")
        return None

    try:
        pipe = redis_client.pipeline()
        pipe.hincrby(cache_key, 'hits', 1)
        pipe.ttl(cache_key)
        hits, ttl = pipe.execute()
    except redis_exceptions.RedisError as e:
        current_app.logger.error(f"Redis HINCRBY failed for key {cache_key}: {e}", exc_info=True)
        hits, ttl = entry.hits + 1, None

    if ttl == -1:
        # The entry expired between the read and the increment, which recreated it without a TTL.
        _delete_quietly(cache_key)
        CACHE_MISSES.labels(cache_type=cache_type).inc()
        current_app.logger.info(f"Cache MISS for {cache_key} (expired during read).")
        return None

    entry.hits = int(hits)
    CACHE_HITS.labels(cache_type=cache_type).inc()
    current_app.logger.info(f"Cache HIT for {cache_key} (hits: {entry.hits}).")
    return entry


def store_cache_entry(cache_key: str, location_key: str, record: Any, expires_at: int, cache_type: str) -> Optional[CacheEntry]:
    """
    Stores `record` under `cache_key` until `expires_at` and registers the key in
    the location's index, a sorted set scored by expiry. Members whose day has
    ended are pruned on every store, and the index expires with its last live entry.
    Any previous entry is replaced and its hit counter reset.
    Returns None (and stores nothing) if the record's day has already ended or Redis fails.
    """
    now = now_timestamp()
    if expires_at <= now:
        current_app.logger.info(f"Not caching {cache_key}: its day has already ended locally.")
        return None

    index_key = generate_location_index_key(location_key)

    try:
        # The index must outlive every entry it points to.
        latest = redis_client.zrange(index_key, -1, -1, withscores=True)
        index_expires_at = max(int(expires_at), int(latest[0][1]) if latest else 0)

        pipe = redis_client.pipeline()
        pipe.delete(cache_key)
        pipe.hset(cache_key, mapping={
            'record': json.dumps(record),
            'created_at': repr(now),
            'expires_at': str(int(expires_at)),
            'hits': '0',
            'location': location_key,
        })
        pipe.expireat(cache_key, int(expires_at))
        pipe.zadd(index_key, {cache_key: int(expires_at)})
        pipe.zremrangebyscore(index_key, '-inf', now)
        pipe.expireat(index_key, index_expires_at)
        pipe.execute()
    except redis_exceptions.RedisError as e:
        current_app.logger.error(f"Redis write failed for key {cache_key}: {e}", exc_info=True)
        return None

    CACHE_STORES.labels(cache_type=cache_type).inc()
    current_app.logger.info(f"Cached {cache_key} until {int(expires_at)}.")
    return CacheEntry(record=record, created_at=now, expires_at=int(expires_at), hits=0, location_key=location_key)


def invalidate_location(location_key: str) -> int:
    """
    Deletes every cached entry stored for `location_key` (all dates, methods and
    calendars) and returns how many entries were removed.
    """
    index_key = generate_location_index_key(location_key)
    try:
        cache_keys = redis_client.zrange(index_key, 0, -1)
        pipe = redis_client.pipeline()
        if cache_keys:
            pipe.delete(*cache_keys)
        pipe.delete(index_key)
        results = pipe.execute()
    except redis_exceptions.RedisError as e:
        current_app.logger.error(f"Redis invalidation failed for location {location_key}: {e}", exc_info=True)
        raise CacheUnavailableError("The cache is currently unavailable.") from e

    removed = int(results[0]) if cache_keys else 0
    CACHE_INVALIDATIONS.inc(removed)
    current_app.logger.info(f"Invalidated {removed} cache entries for location '{location_key}'.")
    return removed


def acquire_fetch_lock(lock_key: str) -> bool:
    """
    Takes the per-key fetch lock so only one request refreshes a missing entry.
    If Redis is unavailable the caller proceeds as if it held the lock.
    """
    try:
        return bool(redis_client.set(lock_key, "1", nx=True, ex=current_app.config.get('CACHE_LOCK_TTL_SECONDS', 30)))
    except redis_exceptions.RedisError as e:
        current_app.logger.error(f"Redis lock acquisition failed for {lock_key}: {e}", exc_info=True)
        return True


def release_fetch_lock(lock_key: str) -> None:
    _delete_quietly(lock_key)


def wait_for_cached_entry(cache_key: str, lock_key: str, cache_type: str) -> Optional[CacheEntry]:
    """
    Waits up to CACHE_LOCK_WAIT_SECONDS for the request holding `lock_key` to
    store `cache_key`. Returns the entry (counting a hit) or None if it never appeared.
    """
    deadline = time.monotonic() + current_app.config.get('CACHE_LOCK_WAIT_SECONDS', 2.0)
    while True:
        if _read_entry(cache_key) is not None:
            return get_cached_entry(cache_key, cache_type)
        try:
            lock_held = bool(redis_client.exists(lock_key))
        except redis_exceptions.RedisError:
            lock_held = False
        if not lock_held or time.monotonic() >= deadline:
            return None
        time.sleep(LOCK_POLL_INTERVAL_SECONDS)


def get_cached_json(key: str, cache_type: str) -> Optional[Any]:
    """Reads a plain JSON value (used for date- and location-independent lookups)."""
    value = _cache_get_json(key)
    if value is None:
        CACHE_MISSES.labels(cache_type=cache_type).inc()
        return None
    CACHE_HITS.labels(cache_type=cache_type).inc()
    return value


def set_cached_json(key: str, value: Any, ttl: int, cache_type: str) -> None:
    if _cache_set_json(key, value, ttl):
        CACHE_STORES.labels(cache_type=cache_type).inc()


def _cache_get_json(key: str) -> Optional[Any]:
    """Helper function to safely get and deserialize a JSON object from Redis."""
    try:
        cached_data = redis_client.get(key)
        if cached_data:
            return json.loads(cached_data)
        return None
    except (redis_exceptions.RedisError, json.JSONDecodeError) as e:
        current_app.logger.error(f"Redis GET or JSON load failed for key {key}: {e}", exc_info=True)
        return None


def _cache_set_json(key: str, value: Any, ttl: int) -> bool:
    """Helper function to safely serialize and set a JSON object in Redis."""
    try:
        redis_client.set(key, json.dumps(value), ex=ttl)
        return True
    except redis_exceptions.RedisError as e:
        current_app.logger.error(f"Redis SET failed for key {key}: {e}", exc_info=True)
        return False


def _delete_quietly(key: str) -> None:
    try:
        redis_client.delete(key)
    except redis_exceptions.RedisError as e:
        current_app.logger.error(f"Redis DELETE failed for key {key}: {e}", exc_info=True)
