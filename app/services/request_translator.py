"""Translation of inbound client requests into upstream requests"""
import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

import httpx
from fastapi import Request

from app.core.exceptions import AuthError, ClientInputError
from app.models.provider import Provider
from app.utils.parsing import try_parse_json

BODYLESS_METHODS = {'GET', 'HEAD', 'OPTIONS'}


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Return the token of a ``Bearer <token>`` header value"""
    if authorization and authorization.startswith('Bearer '):
        return authorization[7:].strip() or None
    return None


@dataclass
class PassthroughRequest:
    """Inbound request as seen by the generic /v1 proxy"""
    method: str
    path: str
    query: str
    headers: list[tuple[str, str]]
    body: Optional[AsyncIterator[bytes]] = None


def read_passthrough_request(request: Request) -> PassthroughRequest:
    """Capture the parts of an inbound request needed to replay it upstream

    The body is kept as the live receive stream, it is not buffered.
    """
    method = request.method.upper()
    return PassthroughRequest(
        method=method,
        path=request.url.path,
        query=request.url.query,
        headers=list(request.headers.items()),
        body=None if method in BODYLESS_METHODS else request.stream(),
    )


def build_passthrough_request(inbound: PassthroughRequest, provider: Provider) -> httpx.Request:
    """Replay an inbound request against a provider

    Only two headers change: Authorization carries the provider token and
    Host is dropped so the client-facing host never reaches the provider.
    """
    headers = httpx.Headers([(k, v) for k, v in inbound.headers if k.lower() != 'host'])
    headers['Authorization'] = f"Bearer {provider.token}"

    url = f"{provider.base_url.rstrip('/')}{inbound.path}"
    if inbound.query:
        url = f"{url}?{inbound.query}"

    return httpx.Request(inbound.method, url, headers=headers, content=inbound.body)


@dataclass
class ChatRequest:
    """Validated chat-completion request for the adapter path"""
    messages: list[Any]
    credential: str
    model: Optional[Any] = None
    # Recorded for the response side only, never sent upstream
    stream: bool = False


async def read_chat_request(request: Request, override_api_key: Optional[str] = None) -> ChatRequest:
    """Parse and validate an adapter request body and resolve its credential

    Raises:
        ClientInputError: body is not JSON or ``messages`` is not an array
        AuthError: no bearer token and no override credential configured
    """
    body = try_parse_json(await request.body())
    if body is None:
        raise ClientInputError('Invalid JSON body')

    messages = body.get('messages') if isinstance(body, dict) else None
    if not isinstance(messages, list):
        raise ClientInputError('"messages" array is required')

    credential = extract_bearer(request.headers.get('authorization')) or override_api_key
    if not credential:
        raise AuthError('Missing API key')

    return ChatRequest(
        messages=messages,
        credential=credential,
        model=body.get('model'),
        stream=body.get('stream') is True,
    )


def build_chat_adapter_request(
    chat: ChatRequest,
    provider: Provider,
    upstream_path: str,
    default_model: str,
) -> httpx.Request:
    """Re-encode a chat request as the multipart form the upstream expects

    ``full_response`` is always forced to true and the upstream call is
    always buffered, whatever the client asked for.
    """
    model = chat.model if chat.model is not None else default_model
    form = {
        'messages': (None, json.dumps(chat.messages, ensure_ascii=False, separators=(',', ':'))),
        'model': (None, str(model)),
        'full_response': (None, 'true'),
    }
    url = f"{provider.base_url.rstrip('/')}{upstream_path}"
    return httpx.Request('POST', url, headers={'x-api-key': chat.credential}, files=form)
