"""API dependencies"""
from typing import Optional

from fastapi import Header, Request

from app.core.exceptions import AuthError
from app.core.security import verify_api_key
from app.services.forwarding import ChatAdapterRoute, ForwardingEngine, PassthroughRoute
from app.services.load_balancer import LoadBalancer


async def verify_auth(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None, alias='X-API-KEY'),
) -> None:
    """Verify the gateway API key"""
    config = request.app.state.config
    if not verify_api_key(config.server.api_key, authorization, x_api_key):
        raise AuthError('Invalid or missing API key')


def get_forwarding_engine(request: Request) -> ForwardingEngine:
    return request.app.state.engine


def get_load_balancer(request: Request) -> LoadBalancer:
    return request.app.state.engine.load_balancer


def get_passthrough_route(request: Request) -> PassthroughRoute:
    return request.app.state.passthrough_route


def get_chat_adapter_route(request: Request) -> ChatAdapterRoute:
    return request.app.state.chat_adapter_route
