"""Models API endpoints"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.core.cors import CORS_HEADERS

router = APIRouter()

CATALOG_CREATED = 1746682848

MODEL_CATALOG = [
    {
        'id': model_id,
        'object': 'model',
        'created': CATALOG_CREATED,
        'owned_by': 'llama4',
    }
    for model_id in ('llama4-maverick', 'gpt-4.1-nano', 'qwen-3-32-b', 'nemotron-ultra')
]


@router.get('/v1/models')
async def list_models():
    """List the models served by the chat adapter (static catalog)"""
    return JSONResponse(content=MODEL_CATALOG, headers=CORS_HEADERS)
