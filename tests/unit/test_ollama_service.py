# tests/unit/test_ollama_service.py
"""Tests for OllamaService with a mocked ollama.AsyncClient."""

import asyncio
import base64
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from ollama import ResponseError

from jwst_cosmos.errors import ConnectivityError, NotConnectedError, ProtocolError
from jwst_cosmos.llm import OllamaModel, OllamaService, PullProgress
from jwst_cosmos.llm.retry import is_retryable

TAGS = {
    "models": [
        {"model": "llava:13b", "size": 8_000_000_000, "digest": "abc", "details": {"family": "llama"}},
        {"model": "qwen2.5:7b", "size": 4_700_000_000, "digest": "def"},
        {"name": "moondream:latest", "size": 900_000_000},
    ]
}


@pytest.fixture
def service():
    svc = OllamaService(timeout=30)
    svc.set_base_url("http://localhost:19000/")
    return svc


class TestOllamaServiceConnection:
    """Test base URL handling and health checks."""

    def test_set_base_url_strips_slash(self, service):
        assert service.base_url == "http://localhost:19000"

    @pytest.mark.asyncio
    async def test_requires_base_url(self):
        with pytest.raises(NotConnectedError, match="Ollama"):
            await OllamaService().list_models()

    @pytest.mark.asyncio
    async def test_is_connected_without_url(self):
        assert await OllamaService().is_connected() is False

    @pytest.mark.asyncio
    async def test_is_connected(self, service):
        with patch.object(service.client, "list", new_callable=AsyncMock) as mock_list:
            mock_list.return_value = TAGS
            assert await service.is_connected() is True

    @pytest.mark.asyncio
    async def test_is_connected_server_down(self, service):
        with patch.object(service.client, "list", new_callable=AsyncMock) as mock_list:
            mock_list.side_effect = ConnectionError("Connection refused")
            assert await service.is_connected() is False


class TestOllamaServiceModels:
    """Test listing, inspection and deletion."""

    @pytest.mark.asyncio
    async def test_list_models(self, service):
        with patch.object(service.client, "list", new_callable=AsyncMock) as mock_list:
            mock_list.return_value = TAGS
            models = await service.list_models()

        assert [m.name for m in models] == ["llava:13b", "qwen2.5:7b", "moondream:latest"]
        assert models[0].details.family == "llama"
        assert models[0].size_str == "7.5 GB"
        assert models[2].size_str == "858 MB"

    @pytest.mark.asyncio
    async def test_list_vision_models(self, service):
        with patch.object(service.client, "list", new_callable=AsyncMock) as mock_list:
            mock_list.return_value = TAGS
            models = await service.list_vision_models()

        assert [m.name for m in models] == ["llava:13b", "moondream:latest"]

    @pytest.mark.asyncio
    async def test_list_models_empty(self, service):
        with patch.object(service.client, "list", new_callable=AsyncMock) as mock_list:
            mock_list.return_value = {"models": None}
            assert await service.list_models() == []

    @pytest.mark.asyncio
    async def test_list_retries_transient_errors(self, service):
        with patch.object(service.client, "list", new_callable=AsyncMock) as mock_list:
            mock_list.side_effect = [ResponseError("busy", 503), TAGS]
            models = await service.list_models()

        assert len(models) == 3
        assert mock_list.call_count == 2

    @pytest.mark.asyncio
    async def test_response_error_maps_to_protocol_error(self, service):
        with patch.object(service.client, "show", new_callable=AsyncMock) as mock_show:
            mock_show.side_effect = ResponseError("model 'nope' not found", 404)
            with pytest.raises(ProtocolError, match="404"):
                await service.show_model("nope")

        mock_show.assert_called_once()

    @pytest.mark.asyncio
    async def test_show_model(self, service):
        with patch.object(service.client, "show", new_callable=AsyncMock) as mock_show:
            mock_show.return_value = {"details": {"parameter_size": "13B"}, "modified_at": "2026-01-01"}
            model = await service.show_model("llava:13b")

        assert model.name == "llava:13b"
        assert model.details.parameter_size == "13B"
        assert model.is_vision_model

    @pytest.mark.asyncio
    async def test_delete_model(self, service):
        with patch.object(service.client, "delete", new_callable=AsyncMock) as mock_delete:
            await service.delete_model(" qwen2.5:7b ")

        mock_delete.assert_called_once_with("qwen2.5:7b")

    @pytest.mark.asyncio
    async def test_delete_rejects_bad_name(self, service):
        with pytest.raises(ValueError, match="Invalid model name"):
            await service.delete_model("../etc")


class TestOllamaServiceGenerate:
    """Test single-shot and image-grounded generation."""

    @pytest.mark.asyncio
    async def test_generate(self, service):
        with patch.object(service.client, "generate", new_callable=AsyncMock) as mock_generate:
            mock_generate.return_value = {"response": "A spiral galaxy.", "done": True}
            text = await service.generate("llava", "What is this?")

        assert text == "A spiral galaxy."
        kwargs = mock_generate.call_args.kwargs
        assert kwargs["stream"] is False
        assert kwargs["images"] is None

    @pytest.mark.asyncio
    async def test_generate_missing_text(self, service):
        with patch.object(service.client, "generate", new_callable=AsyncMock) as mock_generate:
            mock_generate.return_value = {"done": True}
            with pytest.raises(ProtocolError, match="missing text"):
                await service.generate("llava", "hi")

    @pytest.mark.asyncio
    async def test_generate_connection_error(self, service):
        with patch.object(service.client, "generate", new_callable=AsyncMock) as mock_generate:
            mock_generate.side_effect = httpx.ConnectError("refused")
            with pytest.raises(ConnectivityError):
                await service.generate("llava", "hi")

    @pytest.mark.asyncio
    async def test_analyze_image_sends_base64(self, service, tmp_path):
        image = tmp_path / "carina.png"
        image.write_bytes(b"pixels")

        with patch.object(service.client, "generate", new_callable=AsyncMock) as mock_generate:
            mock_generate.return_value = {"response": "Nebula."}
            text = await service.analyze_image("llava", image, "Describe")

        assert text == "Nebula."
        assert mock_generate.call_args.kwargs["images"] == [base64.b64encode(b"pixels").decode()]

    @pytest.mark.asyncio
    async def test_analyze_missing_image(self, service, tmp_path):
        with pytest.raises(FileNotFoundError):
            await service.analyze_image("llava", tmp_path / "missing.png", "Describe")


class TestOllamaServicePull:
    """Test streamed pulls through the progress channel."""

    @pytest.mark.asyncio
    async def test_pull_streams_progress(self, service):
        async def _stream():
            yield {"status": "pulling manifest"}
            yield {"status": "downloading", "digest": "sha256:1", "total": 100, "completed": 40}
            yield {"status": "success"}

        with patch.object(service.client, "pull", new_callable=AsyncMock) as mock_pull:
            mock_pull.return_value = _stream()
            channel = service.pull_model("llava:13b")
            updates = [update async for update in channel]

        assert [u.status for u in updates] == ["pulling manifest", "downloading", "success"]
        assert updates[1].fraction == 0.4
        assert not any(u.error for u in updates)
        mock_pull.assert_called_once_with("llava:13b", stream=True)

    @pytest.mark.asyncio
    async def test_pull_failure_is_final_error_update(self, service):
        async def _stream():
            yield {"status": "pulling manifest"}
            raise ResponseError("pull model manifest: file does not exist", 500)

        with patch.object(service.client, "pull", new_callable=AsyncMock) as mock_pull:
            mock_pull.return_value = _stream()
            updates = [update async for update in service.pull_model("nope")]

        assert updates[-1].error is True
        assert updates[-1].status.startswith("Error:")
        assert "does not exist" in updates[-1].status

    @pytest.mark.asyncio
    async def test_aclose_cancels_pulls(self, service):
        async def _stream():
            yield {"status": "pulling manifest"}
            await asyncio.sleep(60)
            yield {"status": "never"}

        with patch.object(service.client, "pull", new_callable=AsyncMock) as mock_pull:
            mock_pull.return_value = _stream()
            channel = service.pull_model("llava")
            first = await channel.get()
            await service.aclose()

        assert first.status == "pulling manifest"
        assert channel.closed


class TestTypes:
    """Test response normalization helpers."""

    def test_pull_progress_unknown_total(self):
        assert PullProgress(status="verifying").fraction == 0.0

    def test_model_from_object_response(self):
        class _Entry:
            def model_dump(self):
                return {"model": "bakllava", "size": 10}

        model = OllamaModel.from_response(_Entry())
        assert model.name == "bakllava"
        assert model.is_vision_model


class TestIsRetryable:
    def test_transient_errors(self):
        assert is_retryable(ConnectionError())
        assert is_retryable(httpx.ReadTimeout("slow"))
        assert is_retryable(ResponseError("overloaded", 503))

    def test_permanent_errors(self):
        assert not is_retryable(ResponseError("not found", 404))
        assert not is_retryable(ValueError("bad"))
