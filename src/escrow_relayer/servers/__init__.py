from .apps import RelayerServer
from .flows import setup_event_bus
from .limits import RateLimiter, RateLimitDecision
from .security import create_api_key, verify_api_key

__all__ = [
    "RelayerServer",
    "setup_event_bus",
    "RateLimiter",
    "RateLimitDecision",
    "create_api_key",
    "verify_api_key",
]
