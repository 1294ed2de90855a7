"""Tests for the OpenAI SDK backed remote service."""
import json

import httpx
import pytest

from llmchat.core.errors import ApiError, InvalidModelError, TransportError, UnauthorizedError
from llmchat.services.remote_service import RemoteAPIService


def _chunk(content, finish_reason=None):
    return {
        'id': 'chatcmpl-1',
        'object': 'chat.completion.chunk',
        'created': 1700000000,
        'model': 'gpt-4',
        'choices': [{'index': 0, 'delta': {'content': content}, 'finish_reason': finish_reason}],
    }


def _event_stream(*fragments):
    events = [f'data: {json.dumps(_chunk(fragment))}\n\n' for fragment in fragments]
    events.append('data: [DONE]\n\n')
    return ''.join(events)


def _service(endpoint, handler, token='sk-test'):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteAPIService(endpoint, token, http_client=client)


class TestRemoteStreaming:
    """Test chat completion streaming through the SDK."""

    @pytest.mark.asyncio
    async def test_stream(self, make_endpoint):
        """Test that streamed chunks come out as deltas and the request is well formed."""
        captured = {}

        def handler(request):
            captured['url'] = str(request.url)
            captured['auth'] = request.headers.get('authorization')
            captured['body'] = json.loads(request.content)
            return httpx.Response(
                200,
                text=_event_stream('He', 'llo ', 'there'),
                headers={'content-type': 'text/event-stream'},
            )

        service = _service(make_endpoint(url='https://api.openai.com/v1/chat/completions'), handler)
        deltas = [d async for d in service.stream_message('Hi', 'Be brief.', '', 'gpt-4', 0.2, [])]

        assert ''.join(deltas) == 'Hello there'
        assert captured['url'] == 'https://api.openai.com/v1/chat/completions'
        assert captured['auth'] == 'Bearer sk-test'
        assert captured['body']['stream'] is True
        assert captured['body']['messages'][0] == {'role': 'system', 'content': 'Be brief.'}
        assert 'max_tokens' not in captured['body']

    @pytest.mark.asyncio
    async def test_unauthorized(self, make_endpoint):
        """Test that a 401 maps to Unauthorized."""

        def handler(request):
            return httpx.Response(401, json={'error': {'message': 'Incorrect API key provided'}})

        service = _service(make_endpoint(), handler)
        with pytest.raises(UnauthorizedError):
            [d async for d in service.stream_message('Hi', '', '', 'gpt-4', 1.0, [])]

    @pytest.mark.asyncio
    async def test_unknown_model(self, make_endpoint):
        """Test that a 404 about the model maps to InvalidModel."""

        def handler(request):
            return httpx.Response(404, json={'error': {'message': 'The model `gpt-9` does not exist'}})

        service = _service(make_endpoint(), handler)
        with pytest.raises(InvalidModelError):
            [d async for d in service.stream_message('Hi', '', '', 'gpt-9', 1.0, [])]

    @pytest.mark.asyncio
    async def test_server_error(self, make_endpoint):
        """Test that other statuses keep the server's message."""

        def handler(request):
            return httpx.Response(500, json={'error': {'message': 'overloaded'}})

        service = _service(make_endpoint(), handler)
        with pytest.raises(ApiError, match='overloaded'):
            [d async for d in service.stream_message('Hi', '', '', 'gpt-4', 1.0, [])]

    @pytest.mark.asyncio
    async def test_connection_error(self, make_endpoint):
        """Test that connection failures are transport errors."""

        def handler(request):
            raise httpx.ConnectError('refused', request=request)

        service = _service(make_endpoint(), handler)
        with pytest.raises(TransportError):
            [d async for d in service.stream_message('Hi', '', '', 'gpt-4', 1.0, [])]


class TestRemoteModels:
    """Test model listing through the SDK."""

    @pytest.mark.asyncio
    async def test_models_sorted(self, make_endpoint):
        """Test that model ids are returned sorted."""

        def handler(request):
            assert request.url.path == '/v1/models'
            return httpx.Response(
                200,
                json={
                    'object': 'list',
                    'data': [
                        {'id': 'gpt-4o', 'object': 'model', 'created': 0, 'owned_by': 'openai'},
                        {'id': 'gpt-4', 'object': 'model', 'created': 0, 'owned_by': 'openai'},
                    ],
                },
            )

        service = _service(make_endpoint(), handler)
        assert await service.get_available_models() == ['gpt-4', 'gpt-4o']

    @pytest.mark.asyncio
    async def test_close_keeps_injected_client(self, make_endpoint):
        """Test that closing the service leaves a caller-owned HTTP client open."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        service = RemoteAPIService(make_endpoint(), 'sk', http_client=client)
        await service.close()
        assert not client.is_closed
        await client.aclose()
