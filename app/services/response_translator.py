"""Translation of upstream responses back into client responses"""
import json
from typing import Any, AsyncIterator, Iterable

import httpx
from fastapi.responses import JSONResponse, Response, StreamingResponse

from app.core.cors import CORS_HEADERS, with_cors
from app.core.exceptions import UpstreamError
from app.core.logging import get_logger
from app.utils.parsing import try_parse_json

logger = get_logger()

EVENT_STREAM = 'text/event-stream'
DONE_FRAME = b'data: [DONE]\n\n'

# Framing headers are recomputed by the ASGI server for the relayed body
_FRAMING_HEADERS = {'content-length', 'transfer-encoding', 'connection', 'keep-alive'}


def is_event_stream(upstream: httpx.Response) -> bool:
    return EVENT_STREAM in upstream.headers.get('content-type', '')


def relay_headers(upstream: httpx.Response, decoded: bool) -> list[tuple[str, str]]:
    """Upstream header pairs safe to send back, with CORS overlaid

    When the body was decoded by httpx the content-encoding no longer applies.
    """
    dropped = _FRAMING_HEADERS | ({'content-encoding'} if decoded else set())
    return with_cors((k, v) for k, v in upstream.headers.multi_items() if k.lower() not in dropped)


def apply_headers(response: Response, headers: Iterable[tuple[str, str]]) -> Response:
    # append() keeps repeated names, a headers mapping would collapse them
    for key, value in headers:
        response.headers.append(key, value)
    return response


async def relay_stream(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """Pipe upstream bytes to the client as they arrive

    Closing this generator (client went away) closes the upstream response
    too. A failure mid-relay is logged; the status line is already sent.
    """
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    except httpx.HTTPError as e:
        logger.error(f"Stream processing error: {type(e).__name__}: {e}")
    finally:
        await upstream.aclose()


async def adapt_passthrough_response(upstream: httpx.Response) -> Response:
    """Relay an upstream response, live for event streams, buffered otherwise"""
    if is_event_stream(upstream):
        return apply_headers(
            StreamingResponse(relay_stream(upstream), status_code=upstream.status_code),
            relay_headers(upstream, decoded=False),
        )

    try:
        await upstream.aread()
    finally:
        await upstream.aclose()

    return apply_headers(
        Response(content=upstream.content, status_code=upstream.status_code),
        relay_headers(upstream, decoded=True),
    )


def unwrap_content(content: Any) -> Any:
    """Replace a JSON-encoded ``{"text": ...}`` string by its inner text

    Anything else, including strings that are not JSON, is returned unchanged.
    """
    inner = try_parse_json(content)
    if isinstance(inner, dict) and isinstance(inner.get('text'), str):
        return inner['text']
    return content


def unwrap_choices(data: Any) -> Any:
    """Unwrap ``message.content`` of every choice in place"""
    choices = data.get('choices') if isinstance(data, dict) else None
    if not isinstance(choices, list):
        return data
    for choice in choices:
        message = choice.get('message') if isinstance(choice, dict) else None
        if isinstance(message, dict) and isinstance(message.get('content'), str):
            message['content'] = unwrap_content(message['content'])
    return data


def sse_frame(payload: dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False, separators=(',', ':'))}\n\n".encode('utf-8')


def first_choice_content(data: dict[str, Any]) -> str:
    choices = data.get('choices') or []
    first = choices[0] if isinstance(choices, list) and choices else {}
    message = first.get('message') if isinstance(first, dict) else None
    content = message.get('content') if isinstance(message, dict) else None
    return '' if content is None else content


def pseudo_stream_frames(data: Any) -> list[bytes]:
    """Build the fixed role / content / [DONE] frame sequence for a buffered reply"""
    payload = data if isinstance(data, dict) else {}
    envelope = {
        'id': payload.get('id'),
        'object': 'chat.completion.chunk',
        'created': payload.get('created'),
        'model': payload.get('model'),
    }
    role_chunk = {
        **envelope,
        'choices': [{'index': 0, 'delta': {'role': 'assistant'}}],
    }
    content_chunk = {
        **envelope,
        'choices': [{'index': 0, 'delta': {'content': first_choice_content(payload)}, 'finish_reason': 'stop'}],
    }
    return [sse_frame(role_chunk), sse_frame(content_chunk), DONE_FRAME]


async def iterate_frames(frames: Iterable[bytes]) -> AsyncIterator[bytes]:
    for frame in frames:
        yield frame


def adapt_chat_response(upstream: httpx.Response, stream: bool) -> Response:
    """Turn a buffered upstream chat reply into the client-visible response

    Raises:
        UpstreamError: the upstream body is not JSON
    """
    data = try_parse_json(upstream.text)
    if data is None:
        raise UpstreamError(upstream.status_code, upstream.text)

    data = unwrap_choices(data)

    if stream:
        return StreamingResponse(
            iterate_frames(pseudo_stream_frames(data)),
            status_code=200,
            media_type=f'{EVENT_STREAM}; charset=utf-8',
            headers={
                **CORS_HEADERS,
                'Cache-Control': 'no-cache',
                'Connection': 'keep-alive',
            },
        )

    return JSONResponse(content=data, status_code=upstream.status_code, headers=CORS_HEADERS)
