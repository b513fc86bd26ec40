"""CORS headers applied to every gateway response"""
from typing import Iterable

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, POST, PUT, DELETE, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type, Authorization, X-API-KEY',
}

_CORS_KEYS = {k.lower() for k in CORS_HEADERS}


def with_cors(headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Return header pairs with any CORS headers replaced by ours

    Repeated headers such as ``set-cookie`` keep every occurrence.
    """
    merged = [(k, v) for k, v in headers if k.lower() not in _CORS_KEYS]
    merged.extend(CORS_HEADERS.items())
    return merged
