"""Tests for the in-process local model service."""
import pytest

from llmchat.core.errors import ApiError, ModelFileNotFoundError
from llmchat.core.settings import LOCAL_MODEL
from llmchat.schemas.chat import ChatMessage
from llmchat.services.cancellation import CancellationToken
from llmchat.services.local_service import LocalModelService


class FakeLlama:
    """Stand-in for a loaded model exposing the chat completion call."""

    def __init__(self, chunks=None, error=None):
        self.chunks = chunks or []
        self.error = error
        self.calls = []

    def create_chat_completion(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return iter({'choices': [{'delta': {'content': chunk}}]} for chunk in self.chunks)


@pytest.fixture
def model_file(tmp_path):
    """Return a placeholder model file path."""
    path = tmp_path / 'tiny.gguf'
    path.write_bytes(b'GGUF')
    return path


def _service(make_endpoint, model_file, llm, loads=None):
    def factory(path, n_ctx):
        if loads is not None:
            loads.append((path, n_ctx))
        return llm

    endpoint = make_endpoint(LOCAL_MODEL, url=str(model_file))
    return LocalModelService(endpoint, llm_factory=factory)


class TestLocalModelService:
    """Test local streaming, loading and model listing."""

    def test_missing_file(self, make_endpoint, tmp_path):
        """Test that a missing model file fails at construction."""
        with pytest.raises(ModelFileNotFoundError):
            LocalModelService(make_endpoint(LOCAL_MODEL, url=str(tmp_path / 'none.gguf')))

    @pytest.mark.asyncio
    async def test_stream_and_lazy_load(self, make_endpoint, model_file):
        """Test that the model loads once and streams its chunks."""
        llm = FakeLlama(['Hel', 'lo'])
        loads = []
        service = _service(make_endpoint, model_file, llm, loads)
        assert loads == []

        first = [d async for d in service.stream_message('Hi', 'sys', '', 'llama', 0.1, [])]
        second = [d async for d in service.stream_message('Again', 'sys', '', 'llama', 0.1, [])]

        assert first == second == ['Hel', 'lo']
        assert loads == [(str(model_file), 4096)]
        assert llm.calls[0]['stream'] is True
        assert llm.calls[0]['temperature'] == 0.1

    @pytest.mark.asyncio
    async def test_images_become_markers(self, make_endpoint, model_file):
        """Test that history images are sent as text markers."""
        llm = FakeLlama(['ok'])
        service = _service(make_endpoint, model_file, llm)
        history = [ChatMessage.image('aGVsbG8=')]

        [d async for d in service.stream_message('What is it?', '', '', 'llama', 1.0, history)]

        assert llm.calls[0]['messages'][0] == {'role': 'user', 'content': '[Image]'}

    @pytest.mark.asyncio
    async def test_runtime_error(self, make_endpoint, model_file):
        """Test that model failures are API errors."""
        service = _service(make_endpoint, model_file, FakeLlama(error=RuntimeError('context overflow')))
        with pytest.raises(ApiError, match='context overflow'):
            [d async for d in service.stream_message('Hi', '', '', 'llama', 1.0, [])]

    @pytest.mark.asyncio
    async def test_cancelled_token(self, make_endpoint, model_file):
        """Test that a cancelled token yields nothing."""
        token = CancellationToken()
        token.cancel()
        service = _service(make_endpoint, model_file, FakeLlama(['x']))
        assert [d async for d in service.stream_message('Hi', '', '', 'llama', 1.0, [], cancel_token=token)] == []

    @pytest.mark.asyncio
    async def test_models(self, make_endpoint, model_file):
        """Test that the only model offered is the configured one."""
        service = _service(make_endpoint, model_file, FakeLlama())
        assert await service.get_available_models() == ['llama']
