import hmac
import secrets
from typing import Optional

from ..engine.exceptions import AuthError


API_KEY_HEADER = "X-API-Key"


def create_api_key(*, prefix: str = "", nbytes: int = 32) -> str:
    """
    Generate a random API key suitable for the ``API_KEY`` setting.

    Args:
        prefix: A custom string to prepend to the random part.
        nbytes: Number of random bytes (URL-safe base64 encoded).
    """
    return f"{prefix}{secrets.token_urlsafe(nbytes)}"


def api_key_matches(provided: Optional[str], expected: Optional[str]) -> bool:
    """
    Compare a presented API key with the configured one in constant time.

    When no key is configured every request passes.
    """
    if not expected:
        return True
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def verify_api_key(provided: Optional[str], expected: Optional[str]) -> None:
    """
    Raises:
        AuthError: If a key is configured and *provided* does not match it.
    """
    if not api_key_matches(provided, expected):
        raise AuthError("Invalid API key")
