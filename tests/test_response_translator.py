"""Tests for response translation"""
import json

import httpx
import pytest
from fastapi.responses import StreamingResponse

from app.core.exceptions import UpstreamError
from app.services.response_translator import (
    adapt_chat_response,
    adapt_passthrough_response,
    pseudo_stream_frames,
    relay_stream,
    unwrap_choices,
    unwrap_content,
)


async def collect_body(response) -> bytes:
    """Drain a (streaming) response body"""
    if isinstance(response, StreamingResponse):
        return b''.join([chunk async for chunk in response.body_iterator])
    return response.body


def parse_frames(body: bytes) -> list[str]:
    return [frame for frame in body.decode('utf-8').split('\n\n') if frame]


def upstream_reply(content, status_code=200) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={
            'id': 'x',
            'created': 1,
            'model': 'm',
            'choices': [{'message': {'role': 'assistant', 'content': content}}],
        },
    )


class ChunkStream(httpx.AsyncByteStream):
    """Async byte stream that can fail partway through"""

    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self):
        self.closed = True


@pytest.mark.unit
class TestUnwrap:
    """Test nested JSON content unwrapping"""

    def test_unwraps_text_field(self):
        assert unwrap_content('{"text": "hello"}') == 'hello'

    @pytest.mark.parametrize('content', [
        'plain text',
        '{"text": 42}',
        '{"other": "x"}',
        '["text"]',
        '{broken',
        '"just a string"',
    ])
    def test_leaves_other_content_untouched(self, content):
        assert unwrap_content(content) == content

    def test_unwraps_only_one_level(self):
        nested = json.dumps({'text': json.dumps({'text': 'deep'})})

        assert unwrap_content(nested) == '{"text": "deep"}'

    def test_unwraps_every_choice(self):
        data = {'choices': [
            {'message': {'content': '{"text": "one"}'}},
            {'message': {'content': 'two'}},
            {'message': {'content': None}},
            {'delta': {}},
            'junk',
        ]}

        unwrap_choices(data)

        assert data['choices'][0]['message']['content'] == 'one'
        assert data['choices'][1]['message']['content'] == 'two'
        assert data['choices'][2]['message']['content'] is None

    @pytest.mark.parametrize('data', [{}, {'choices': None}, {'choices': 5}, {'choices': True}, [], 'text'])
    def test_tolerates_missing_choices(self, data):
        assert unwrap_choices(data) == data


@pytest.mark.unit
class TestChatResponse:
    """Test adapter response shaping"""

    @pytest.mark.asyncio
    async def test_buffered_reply_is_unwrapped(self):
        response = adapt_chat_response(upstream_reply('{"text":"hello"}'), stream=False)

        assert response.status_code == 200
        assert response.headers['content-type'] == 'application/json'
        assert response.headers['access-control-allow-origin'] == '*'
        data = json.loads(await collect_body(response))
        assert data['choices'][0]['message']['content'] == 'hello'

    @pytest.mark.asyncio
    async def test_buffered_reply_keeps_upstream_status(self):
        upstream = httpx.Response(422, json={'error': {'message': 'bad model'}})

        response = adapt_chat_response(upstream, stream=False)

        assert response.status_code == 422
        assert json.loads(await collect_body(response)) == {'error': {'message': 'bad model'}}

    def test_non_json_reply_raises_upstream_error(self):
        upstream = httpx.Response(502, text='<html>Bad gateway</html>')

        with pytest.raises(UpstreamError) as exc_info:
            adapt_chat_response(upstream, stream=True)

        response = exc_info.value.to_response()
        assert response.status_code == 502
        assert response.body == b'<html>Bad gateway</html>'
        assert response.headers['content-type'].startswith('text/plain')
        assert response.headers['access-control-allow-origin'] == '*'

    @pytest.mark.asyncio
    async def test_stream_request_gets_three_frames(self):
        response = adapt_chat_response(upstream_reply('hi there'), stream=True)

        assert response.status_code == 200
        assert response.headers['content-type'].startswith('text/event-stream')
        assert response.headers['cache-control'] == 'no-cache'

        frames = parse_frames(await collect_body(response))
        assert len(frames) == 3
        role, content = (json.loads(frame[len('data: '):]) for frame in frames[:2])

        assert role['id'] == 'x'
        assert role['created'] == 1
        assert role['model'] == 'm'
        assert role['object'] == 'chat.completion.chunk'
        assert role['choices'] == [{'index': 0, 'delta': {'role': 'assistant'}}]

        assert content['id'] == 'x'
        assert content['choices'] == [{'index': 0, 'delta': {'content': 'hi there'}, 'finish_reason': 'stop'}]

        assert frames[2] == 'data: [DONE]'

    @pytest.mark.asyncio
    async def test_stream_content_is_unwrapped(self):
        response = adapt_chat_response(upstream_reply('{"text": "inner"}'), stream=True)

        frames = parse_frames(await collect_body(response))

        assert json.loads(frames[1][len('data: '):])['choices'][0]['delta']['content'] == 'inner'

    @pytest.mark.asyncio
    @pytest.mark.parametrize('choices', [5, True, 'text'])
    async def test_scalar_choices_still_stream(self, choices):
        upstream = httpx.Response(200, json={'id': 'x', 'created': 1, 'model': 'm', 'choices': choices})

        response = adapt_chat_response(upstream, stream=True)

        frames = parse_frames(await collect_body(response))
        assert len(frames) == 3
        assert json.loads(frames[1][len('data: '):])['choices'][0]['delta']['content'] == ''

    def test_frames_without_choices_carry_empty_content(self):
        frames = pseudo_stream_frames({'id': 'x', 'created': 1, 'model': 'm', 'choices': []})

        content = json.loads(frames[1].decode()[len('data: '):])
        assert content['choices'][0]['delta']['content'] == ''


@pytest.mark.unit
class TestPassthroughResponse:
    """Test passthrough relay"""

    @pytest.mark.asyncio
    async def test_buffered_body_relayed_with_cors(self):
        upstream = httpx.Response(
            404,
            json={'error': 'no such model'},
            headers={'x-request-id': 'req-1', 'access-control-allow-origin': 'https://other.test'},
        )

        response = await adapt_passthrough_response(upstream)

        assert response.status_code == 404
        assert json.loads(response.body) == {'error': 'no such model'}
        assert response.headers['x-request-id'] == 'req-1'
        assert response.headers['access-control-allow-origin'] == '*'
        assert response.headers['content-length'] == str(len(response.body))

    @pytest.mark.asyncio
    async def test_repeated_headers_are_kept_apart(self):
        upstream = httpx.Response(
            200,
            json={'ok': True},
            headers=[('set-cookie', 'a=1; Path=/'), ('set-cookie', 'b=2; Path=/')],
        )

        response = await adapt_passthrough_response(upstream)

        assert response.headers.getlist('set-cookie') == ['a=1; Path=/', 'b=2; Path=/']
        assert response.headers.getlist('access-control-allow-origin') == ['*']

    @pytest.mark.asyncio
    async def test_event_stream_is_relayed_live(self):
        stream = ChunkStream([b'data: {"a":1}\n\n', b'data: [DONE]\n\n'])
        upstream = httpx.Response(200, headers={'content-type': 'text/event-stream'}, stream=stream)

        response = await adapt_passthrough_response(upstream)

        assert isinstance(response, StreamingResponse)
        assert response.headers['content-type'] == 'text/event-stream'
        assert response.headers['access-control-allow-origin'] == '*'
        assert await collect_body(response) == b'data: {"a":1}\n\ndata: [DONE]\n\n'
        assert stream.closed

    @pytest.mark.asyncio
    async def test_relay_failure_ends_stream_quietly(self):
        stream = ChunkStream([b'data: partial\n\n'], error=httpx.ReadError('connection reset'))
        upstream = httpx.Response(200, headers={'content-type': 'text/event-stream'}, stream=stream)

        chunks = [chunk async for chunk in relay_stream(upstream)]

        assert chunks == [b'data: partial\n\n']
        assert stream.closed

    @pytest.mark.asyncio
    async def test_closing_relay_closes_upstream(self):
        stream = ChunkStream([b'one', b'two', b'three'])
        upstream = httpx.Response(200, headers={'content-type': 'text/event-stream'}, stream=stream)

        relay = relay_stream(upstream)
        assert await relay.__anext__() == b'one'
        await relay.aclose()

        assert stream.closed
