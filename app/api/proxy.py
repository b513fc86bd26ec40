"""Generic /v1 passthrough endpoint"""
from fastapi import APIRouter, Depends, Request

from app.api.dependencies import verify_auth, get_forwarding_engine, get_passthrough_route
from app.services.forwarding import ForwardingEngine, PassthroughRoute

router = APIRouter()

PROXY_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'HEAD']


@router.api_route('/{path:path}', methods=PROXY_METHODS)
async def proxy(
    request: Request,
    _: None = Depends(verify_auth),
    engine: ForwardingEngine = Depends(get_forwarding_engine),
    route: PassthroughRoute = Depends(get_passthrough_route),
):
    """Forward any OpenAI API call to the selected provider"""
    return await engine.forward(route, request)
