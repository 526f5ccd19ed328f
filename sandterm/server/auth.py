"""
API key authentication.

Keys arrive in the X-API-Key header, or in the `api_key` query parameter for
SSE clients (browser EventSource cannot set headers). Uses constant-time
comparison to prevent timing attacks.
"""

import hmac
from typing import Optional

from fastapi import Header, Query

from sandterm.server.config import get_settings
from sandterm.server.exceptions import AuthenticationError


def verify_api_key(api_key: str) -> bool:
    """
    Verify an API key against the configured key.

    Returns:
        True if valid or no key is configured, False otherwise.
    """
    settings = get_settings()
    if settings.api_key is None:
        return True  # No key configured = no auth required

    return hmac.compare_digest(api_key.encode(), settings.api_key.encode())


def get_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    api_key: Optional[str] = Query(None, include_in_schema=False),
) -> Optional[str]:
    """
    FastAPI dependency to extract and validate API key.

    Raises:
        AuthenticationError: If auth is required but key is missing or invalid.

    Returns:
        The validated API key, or None if auth not required.
    """
    settings = get_settings()

    if not settings.auth_required:
        return None

    key = x_api_key if x_api_key is not None else api_key
    if key is None:
        raise AuthenticationError("Missing X-API-Key header")

    if not verify_api_key(key):
        raise AuthenticationError("Invalid API key")

    return key
