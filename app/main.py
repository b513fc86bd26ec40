"""Main application entry point"""
from typing import Optional

import urllib3
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.router import adapter_router, api_router, health_router, metrics_router
from app.core.config import get_config
from app.core.cors import CORS_HEADERS
from app.core.exceptions import GatewayError
from app.core.http_client import create_http_client
from app.core.logging import setup_logging, get_logger
from app.core.metrics import APP_INFO
from app.core.middleware import MetricsMiddleware
from app.models.config import AppConfig
from app.services.forwarding import ChatAdapterRoute, ForwardingEngine, PassthroughRoute
from app.services.load_balancer import build_load_balancer, fallback_provider

urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

logger = get_logger()

VERSION = "1.0.0"


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Create and configure FastAPI application

    The load balancer, HTTP client and forwarding engine are built here, once,
    and reached by the routes through ``app.state``.
    """
    config = config or get_config()

    app = FastAPI(
        title="OpenAI API Proxy",
        description="Load-balancing gateway for OpenAI-compatible providers",
        version=VERSION
    )

    load_balancer = build_load_balancer(config)
    http_client = create_http_client(config)

    app.state.config = config
    app.state.engine = ForwardingEngine(load_balancer, http_client)
    app.state.passthrough_route = PassthroughRoute(fallback_provider(config))
    app.state.chat_adapter_route = ChatAdapterRoute(config.adapter)

    app.add_middleware(MetricsMiddleware)

    # Adapter first so an empty prefix still wins over the /v1 passthrough
    app.include_router(adapter_router, prefix=config.adapter.prefix)
    app.include_router(api_router)
    app.include_router(health_router)
    app.include_router(metrics_router)

    # Preflight is answered before routing so unknown paths still 404
    @app.middleware("http")
    async def preflight(request: Request, call_next):
        if request.method == 'OPTIONS':
            return Response(status_code=204, headers=CORS_HEADERS)
        return await call_next(request)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return exc.to_response()

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            content={'error': exc.detail},
            status_code=exc.status_code,
            headers={**(exc.headers or {}), **CORS_HEADERS},
        )

    @app.on_event("startup")
    async def startup_event():
        """Initialize logging and report the provider pool"""
        setup_logging(log_level="INFO")

        APP_INFO.info({
            'version': VERSION,
            'title': 'OpenAI API Proxy'
        })

        providers = load_balancer.providers
        logger.info(f"Starting OpenAI API Proxy with {len(providers)} providers, strategy={load_balancer.strategy.value}")
        for provider in providers:
            logger.info(f"  - {provider.id}: {provider.base_url} (weight={provider.weight})")
        logger.info(f"Gateway API key: {'Enabled' if config.server.api_key else 'Disabled'}")
        logger.info(f"Chat adapter: {config.adapter.prefix or '/'}v1/chat/completions")

    @app.on_event("shutdown")
    async def shutdown_event():
        await http_client.aclose()

    return app


app = create_app()
