"""Request forwarding pipeline

A ``ForwardingEngine`` runs one inbound request through provider selection,
request translation, the upstream call and response translation. What is
translated and how is decided by the route object the API layer hands in:
``PassthroughRoute`` for the generic ``/v1`` proxy, ``ChatAdapterRoute`` for
the chat-completion adapter.
"""
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from fastapi import Request
from fastapi.responses import Response

from app.core.exceptions import GatewayError, ProxyError
from app.core.logging import get_logger
from app.core.metrics import UPSTREAM_ERRORS
from app.models.config import AdapterConfig
from app.models.provider import Provider
from app.services.load_balancer import LoadBalancer
from app.services.request_translator import (
    build_chat_adapter_request,
    build_passthrough_request,
    read_chat_request,
    read_passthrough_request,
)
from app.services.response_translator import adapt_chat_response, adapt_passthrough_response

logger = get_logger()


class ForwardingRoute(ABC):
    """Translation capability for one family of endpoints"""

    mode: str
    # Whether the upstream body is left unread for the response side to stream
    stream_upstream: bool = False

    @abstractmethod
    async def read(self, request: Request) -> Any:
        """Capture and validate the inbound request"""

    @abstractmethod
    def resolve_provider(self, provider: Optional[Provider]) -> Provider:
        """Decide what to do with the load balancer's pick, which may be None"""

    @abstractmethod
    def build(self, inbound: Any, provider: Provider) -> httpx.Request:
        """Build the outbound request"""

    @abstractmethod
    async def adapt(self, inbound: Any, upstream: httpx.Response) -> Response:
        """Translate the upstream response for the client"""


class PassthroughRoute(ForwardingRoute):
    """Forward any /v1 request with only the credential rewritten"""

    mode = 'passthrough'
    stream_upstream = True

    def __init__(self, fallback: Provider):
        self._fallback = fallback

    async def read(self, request: Request):
        return read_passthrough_request(request)

    def resolve_provider(self, provider: Optional[Provider]) -> Provider:
        if provider is None:
            logger.warning(f"No provider registered, falling back to {self._fallback.base_url}")
            return self._fallback
        return provider

    def build(self, inbound, provider: Provider) -> httpx.Request:
        return build_passthrough_request(inbound, provider)

    async def adapt(self, inbound, upstream: httpx.Response) -> Response:
        return await adapt_passthrough_response(upstream)


class ChatAdapterRoute(ForwardingRoute):
    """Serve chat completions from a buffered multipart upstream"""

    mode = 'chat-adapter'
    stream_upstream = False

    def __init__(self, config: AdapterConfig):
        self._config = config

    async def read(self, request: Request):
        return await read_chat_request(request, self._config.override_api_key)

    def resolve_provider(self, provider: Optional[Provider]) -> Provider:
        if provider is None:
            raise ProxyError('No provider available')
        return provider

    def build(self, inbound, provider: Provider) -> httpx.Request:
        return build_chat_adapter_request(
            inbound,
            provider,
            upstream_path=self._config.upstream_path,
            default_model=self._config.default_model,
        )

    async def adapt(self, inbound, upstream: httpx.Response) -> Response:
        return adapt_chat_response(upstream, stream=inbound.stream)


class ForwardingEngine:
    """Runs requests through select, build, send and adapt

    Nothing raised inside the pipeline escapes ``forward``: gateway errors
    become their own JSON response, anything else a 500 proxy error.
    """

    def __init__(self, load_balancer: LoadBalancer, client: httpx.AsyncClient):
        self._load_balancer = load_balancer
        self._client = client

    @property
    def load_balancer(self) -> LoadBalancer:
        return self._load_balancer

    async def forward(self, route: ForwardingRoute, request: Request) -> Response:
        request.state.mode = route.mode

        try:
            # Validate before selecting so rejected requests cost no usage
            inbound = await route.read(request)
            provider = route.resolve_provider(self._load_balancer.select())
        except GatewayError as e:
            logger.info(f"{route.mode} request rejected: {e.message}")
            return e.to_response()
        except Exception as e:
            logger.error(f"Failed to read {route.mode} request: {type(e).__name__}: {e}")
            return ProxyError(str(e) or type(e).__name__).to_response()

        request.state.provider = provider.id
        upstream: Optional[httpx.Response] = None
        try:
            outbound = route.build(inbound, provider)
            upstream = await self._client.send(outbound, stream=route.stream_upstream)
            return await route.adapt(inbound, upstream)
        except GatewayError as e:
            UPSTREAM_ERRORS.labels(provider=provider.id, error_type=type(e).__name__).inc()
            logger.warning(f"{route.mode} request to {provider.id} failed: {e.message}")
            return e.to_response()
        except Exception as e:
            if upstream is not None:
                await upstream.aclose()
            UPSTREAM_ERRORS.labels(provider=provider.id, error_type=type(e).__name__).inc()
            logger.error(f"Proxy error ({provider.id}): {type(e).__name__}: {e}")
            return ProxyError(str(e) or type(e).__name__).to_response()
