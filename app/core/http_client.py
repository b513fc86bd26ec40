"""Shared HTTP client for making requests to providers"""
import httpx

from app.models.config import AppConfig


def create_http_client(config: AppConfig) -> httpx.AsyncClient:
    """
    Create the HTTP client shared by every forwarded request

    Returns:
        httpx.AsyncClient configured with app settings
    """
    return httpx.AsyncClient(
        verify=config.verify_ssl,
        timeout=float(config.request_timeout_secs),
        follow_redirects=True,
        limits=httpx.Limits(
            max_keepalive_connections=20,
            max_connections=100,
            keepalive_expiry=30.0
        )
    )
