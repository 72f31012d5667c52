# prayer_gateway/utils/constants.py

class Tiers:
    """
    Caller tiers used for rate limiting and for gating cache administration.
    All tier names are defined here so config, decorators and tests agree on them.
    """
    ANONYMOUS = 'anonymous'
    STANDARD = 'standard'
    PREMIUM = 'premium'
    INTERNAL = 'internal'

    ALL = (ANONYMOUS, STANDARD, PREMIUM, INTERNAL)
