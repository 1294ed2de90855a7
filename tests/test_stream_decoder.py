"""Tests for server-sent-event line decoding."""
import json

import pytest
from hypothesis import given
from hypothesis import strategies as st

from llmchat.services.cancellation import CancellationToken
from llmchat.services.stream_decoder import (
    aiter_deltas,
    decode_line,
    extract_delta,
    iter_deltas,
    normalize_fragment,
)


def _chunk(content) -> str:
    return 'data: ' + json.dumps({'choices': [{'delta': {'content': content}}]})


class TestDecodeLine:
    """Test single-line decoding."""

    def test_data_line_yields_content(self):
        """Test that a framed chunk yields its delta content."""
        assert decode_line(_chunk('Hel')) == 'Hel'

    def test_prefix_without_space(self):
        """Test that 'data:' without a trailing space is accepted."""
        line = 'data:' + json.dumps({'choices': [{'delta': {'content': 'x'}}]})
        assert decode_line(line) == 'x'

    def test_unframed_json_line(self):
        """Test that a bare JSON line is decoded as-is."""
        assert decode_line(json.dumps({'choices': [{'delta': {'content': 'y'}}]})) == 'y'

    @pytest.mark.parametrize('line', ['', '   ', '\r\n', 'data: [DONE]', '[DONE]'])
    def test_ignored_lines(self, line):
        """Test that blank lines and the end marker produce nothing."""
        assert decode_line(line) is None

    def test_malformed_json_is_skipped(self):
        """Test that partial JSON is skipped rather than raised."""
        assert decode_line('data: {"choices": [{"delta": {"cont') is None

    def test_chunk_without_content(self):
        """Test that role-only and empty deltas produce nothing."""
        assert decode_line('data: ' + json.dumps({'choices': [{'delta': {'role': 'assistant'}}]})) is None
        assert decode_line(_chunk('')) is None
        assert decode_line('data: ' + json.dumps({'choices': []})) is None

    def test_carriage_return_stripped(self):
        """Test that CRLF line endings do not break decoding."""
        assert decode_line(_chunk('ok') + '\r\n') == 'ok'


class TestExtractDelta:
    """Test delta extraction from parsed payloads."""

    def test_first_choice_wins(self):
        """Test that only the first choice is read."""
        payload = {'choices': [{'delta': {'content': 'a'}}, {'delta': {'content': 'b'}}]}
        assert extract_delta(payload) == 'a'

    def test_non_dict_payload(self):
        """Test that unexpected payload shapes produce nothing."""
        assert extract_delta(['choices']) is None
        assert extract_delta({'choices': ['text']}) is None

    def test_list_content_is_flattened(self):
        """Test that list-of-parts content is joined."""
        assert normalize_fragment([{'type': 'text', 'text': 'a'}, 'b', {'type': 'image'}]) == 'ab'
        assert extract_delta({'choices': [{'delta': {'content': [{'text': 'z'}]}}]}) == 'z'


class TestIterDeltas:
    """Test decoding of whole line sequences."""

    def test_malformed_then_valid(self):
        """Test that a malformed line followed by a valid one yields exactly one delta."""
        lines = ['data: {not json', _chunk('Hi')]
        assert list(iter_deltas(lines)) == ['Hi']

    @pytest.mark.parametrize('choices', [{'x': 1}, 5, 'text', None])
    def test_odd_choices_are_skipped(self, choices):
        """Test that a chunk whose choices is not a list yields nothing and decoding continues."""
        lines = ['data: ' + json.dumps({'choices': choices}), _chunk('ok')]
        assert list(iter_deltas(lines)) == ['ok']

    def test_order_preserved(self):
        """Test that deltas come out in line order."""
        lines = [_chunk('He'), '', _chunk('llo '), 'data: [DONE]', _chunk('there')]
        assert list(iter_deltas(lines)) == ['He', 'llo ', 'there']

    @given(st.lists(st.text(min_size=1).filter(lambda s: '[DONE]' not in s), max_size=20))
    def test_reassembles_stream(self, fragments):
        """Property test: decoding framed fragments reproduces their concatenation."""
        lines = [_chunk(fragment) for fragment in fragments] + ['data: [DONE]']
        assert ''.join(iter_deltas(lines)) == ''.join(fragments)

    @given(st.lists(st.text(min_size=1, max_size=5), min_size=1, max_size=10), st.integers(min_value=1, max_value=4))
    def test_blank_padding_does_not_matter(self, fragments, padding):
        """Property test: interleaved blank keep-alive lines never change the output."""
        padded = []
        for fragment in fragments:
            padded.append(_chunk(fragment))
            padded.extend([''] * padding)
        plain = [_chunk(fragment) for fragment in fragments]
        assert list(iter_deltas(padded)) == list(iter_deltas(plain))


class TestAsyncIterDeltas:
    """Test the async decoder."""

    @staticmethod
    async def _lines(items):
        for item in items:
            yield item

    @pytest.mark.asyncio
    async def test_yields_deltas(self):
        """Test that async decoding matches the sync decoder."""
        lines = [_chunk('a'), 'data: nope', _chunk('b')]
        assert [delta async for delta in aiter_deltas(self._lines(lines))] == ['a', 'b']

    @pytest.mark.asyncio
    async def test_stops_when_cancelled(self):
        """Test that a cancelled token ends decoding before the next line."""
        token = CancellationToken()

        async def lines():
            yield _chunk('a')
            token.cancel()
            yield _chunk('b')

        assert [delta async for delta in aiter_deltas(lines(), token)] == ['a']
