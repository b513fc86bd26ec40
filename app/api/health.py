"""Health and status endpoints"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse

from app.api.dependencies import verify_auth, get_load_balancer
from app.core.cors import CORS_HEADERS
from app.services.load_balancer import LoadBalancer

router = APIRouter()


@router.get('/')
async def root():
    return PlainTextResponse('OpenAI API Proxy is running!', headers=CORS_HEADERS)


@router.get('/health')
async def health(load_balancer: LoadBalancer = Depends(get_load_balancer)):
    """Basic health check endpoint, providers are not probed"""
    return JSONResponse(
        content={'status': 'ok', 'providers': len(load_balancer.providers)},
        headers=CORS_HEADERS,
    )


@router.get('/stats')
async def stats(
    _: None = Depends(verify_auth),
    load_balancer: LoadBalancer = Depends(get_load_balancer),
):
    """Active strategy and per-provider usage"""
    return JSONResponse(content=load_balancer.stats(), headers=CORS_HEADERS)
