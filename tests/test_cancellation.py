"""Tests for cancellation tokens, the service stream guard and settings notifications."""
import asyncio

import pytest

from llmchat.services.cancellation import CancellationToken
from llmchat.services.notifications import ENDPOINT_UPDATED, NotificationCenter


class TestCancellationToken:
    """Test the one-way cancellation flag."""

    def test_callbacks_run_once(self):
        """Test that repeated cancels run callbacks exactly once."""
        token = CancellationToken()
        calls = []
        token.add_callback(lambda: calls.append('x'))
        token.cancel()
        token.cancel()
        assert token.cancelled
        assert calls == ['x']

    def test_late_callback_runs_immediately(self):
        """Test that callbacks added after cancellation run right away."""
        token = CancellationToken()
        token.cancel()
        calls = []
        token.add_callback(lambda: calls.append('late'))
        assert calls == ['late']

    def test_failing_callback_does_not_block_others(self):
        """Test that one failing callback does not stop the rest."""
        token = CancellationToken()
        calls = []

        def broken():
            raise RuntimeError('boom')

        token.add_callback(broken)
        token.add_callback(lambda: calls.append('ok'))
        token.cancel()
        assert calls == ['ok']


class TestServiceCancellation:
    """Test cancellation through the chat service base class."""

    @pytest.mark.asyncio
    async def test_cancel_request_stops_stream(self, make_endpoint, make_service):
        """Test that cancel_request ends an open stream without further deltas."""
        gate = asyncio.Event()
        service = make_service(make_endpoint(), ['a', gate, 'b'])
        stream = service.stream_message('Hi', '', '', 'gpt-4', 1.0, [])

        assert await stream.__anext__() == 'a'
        assert service.has_active_request
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)
        service.cancel_request()
        service.cancel_request()
        gate.set()

        with pytest.raises(StopAsyncIteration):
            await pending
        assert not service.has_active_request

    @pytest.mark.asyncio
    async def test_stream_is_lazy(self, make_endpoint, make_service):
        """Test that nothing is requested until the first delta is pulled."""
        service = make_service(make_endpoint(), ['a'])
        stream = service.stream_message('Hi', '', '', 'gpt-4', 1.0, [])
        assert service.requests == []
        assert [d async for d in stream] == ['a']
        assert len(service.requests) == 1


class TestNotificationCenter:
    """Test settings change broadcasting."""

    def test_subscribe_and_unsubscribe(self):
        """Test that handlers receive posts until they unsubscribe."""
        center = NotificationCenter()
        received = []
        unsubscribe = center.subscribe(ENDPOINT_UPDATED, lambda event, payload: received.append(payload))
        center.post(ENDPOINT_UPDATED, 'ep-1')
        unsubscribe()
        center.post(ENDPOINT_UPDATED, 'ep-2')
        assert received == ['ep-1']

    def test_failing_handler_is_isolated(self):
        """Test that a broken handler does not stop delivery to others."""
        center = NotificationCenter()
        received = []

        def broken(event, payload):
            raise RuntimeError('boom')

        center.subscribe(ENDPOINT_UPDATED, broken)
        center.subscribe(ENDPOINT_UPDATED, lambda event, payload: received.append(payload))
        center.post(ENDPOINT_UPDATED, 'x')
        assert received == ['x']
