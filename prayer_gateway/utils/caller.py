# prayer_gateway/utils/caller.py
import hashlib
from dataclasses import dataclass
from functools import wraps

from flask import current_app, g, request
from flask_limiter.util import get_remote_address
from flask_smorest import abort

from .constants import Tiers


@dataclass(frozen=True)
class Caller:
    """The identity a request is rate limited under, and the tier it belongs to."""
    identity: str
    tier: str


def _hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode('utf-8')).hexdigest()[:16]


def resolve_caller(reject_unknown_key: bool = True) -> Caller:
    """
    Resolves the caller of the current request from the API key header.
    Requests without a key are anonymous and identified by their remote address.
    An unknown key is rejected with 401 rather than silently downgraded, unless
    `reject_unknown_key` is False, in which case it is treated as anonymous.
    """
    header_name = current_app.config.get('API_KEY_HEADER', 'X-API-Key')
    api_key = request.headers.get(header_name)

    if not api_key:
        return Caller(identity=f"ip:{get_remote_address()}", tier=Tiers.ANONYMOUS)

    tier = current_app.config.get('API_KEYS', {}).get(api_key)
    if tier is None:
        if not reject_unknown_key:
            return Caller(identity=f"ip:{get_remote_address()}", tier=Tiers.ANONYMOUS)
        current_app.logger.warning(f"Caller: Rejected unknown API key from {get_remote_address()}.")
        abort(401, message="Invalid API key.")

    if tier not in Tiers.ALL:
        current_app.logger.warning(f"Caller: API key configured with unknown tier '{tier}'. Using '{Tiers.STANDARD}'.")
        tier = Tiers.STANDARD

    return Caller(identity=f"key:{_hash_api_key(api_key)}", tier=tier)


def get_current_caller() -> Caller:
    """Returns the caller for the current request, resolving it once per request."""
    caller = g.get('caller')
    if caller is None:
        caller = resolve_caller()
        g.caller = caller
    return caller


def get_rate_limited_caller() -> Caller:
    """
    The caller as seen by the rate limiter. The limiter runs before the blueprint's
    own checks, so an unknown key is counted against its address here and is not
    remembered; the blueprint resolves it again and answers 401.
    """
    caller = g.get('caller')
    if caller is None:
        caller = resolve_caller(reject_unknown_key=False)
    return caller


def caller_rate_limit_key() -> str:
    """Key function for Flask-Limiter: counters are kept per caller identity."""
    return get_rate_limited_caller().identity


def caller_tier_limit() -> str:
    """Dynamic limit for Flask-Limiter: the quota string of the caller's tier."""
    tiers = current_app.config['RATE_LIMIT_TIERS']
    return tiers.get(get_rate_limited_caller().tier, tiers[Tiers.ANONYMOUS])


def calendar_rate_limit() -> str:
    return current_app.config['CALENDAR_RATE_LIMIT']


def tier_required(config_key):
    """
    Restricts a view to the caller tiers listed under `config_key` in the app config,
    e.g. @tier_required('CACHE_ADMIN_TIERS').
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            caller = get_current_caller()
            if caller.tier not in current_app.config.get(config_key, ()):
                abort(403, message=f"Tier '{caller.tier}' is not allowed to perform this operation.")
            return f(*args, **kwargs)
        return decorated_function
    return decorator
