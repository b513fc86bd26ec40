"""Chat-completion adapter endpoint"""
from fastapi import APIRouter, Depends, Request

from app.api.dependencies import get_forwarding_engine, get_chat_adapter_route
from app.services.forwarding import ChatAdapterRoute, ForwardingEngine

router = APIRouter()


@router.post('/v1/chat/completions')
async def chat_completions(
    request: Request,
    engine: ForwardingEngine = Depends(get_forwarding_engine),
    route: ChatAdapterRoute = Depends(get_chat_adapter_route),
):
    """Serve a chat completion through the multipart upstream

    The caller's bearer token is the upstream credential, so this endpoint
    is not behind the gateway API key.
    """
    return await engine.forward(route, request)
