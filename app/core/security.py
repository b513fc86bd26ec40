"""Security utilities"""
from typing import Optional


def verify_api_key(
    configured_key: Optional[str],
    authorization: Optional[str] = None,
    x_api_key: Optional[str] = None,
) -> bool:
    """Verify the gateway API key if one is configured

    The key is read from ``Authorization: Bearer <key>`` first, then from
    ``X-API-KEY``.
    """
    if configured_key is None:
        return True

    provided_key = None
    if authorization and authorization.startswith('Bearer '):
        provided_key = authorization[7:]
    provided_key = provided_key or x_api_key

    return provided_key == configured_key
