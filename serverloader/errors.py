"""
Failures a single server-loader cycle can end with.

All of them are cycle-local: the first cycle at build time propagates them,
later cycles log and drop them.
"""


class OnlineConfigError(Exception):
    """Base class for every failure of a fetch cycle."""

    stage = "unknown"


class RequestConstructionError(OnlineConfigError):
    stage = "fetching"


class TransportError(OnlineConfigError):
    stage = "fetching"


class BodyReadError(OnlineConfigError):
    stage = "collecting_body"


class EncodingError(OnlineConfigError):
    stage = "collecting_body"


class ParseError(OnlineConfigError):
    stage = "parsing"


class IntegrityError(OnlineConfigError):
    stage = "checking_integrity"


class PoolUpdateError(OnlineConfigError):
    stage = "updating_pool"


class CycleTimeout(OnlineConfigError):
    stage = "timeout"
