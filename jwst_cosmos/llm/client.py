# jwst_cosmos/llm/client.py
"""Ollama client for vision description and model management over a tunnel."""

import asyncio
import base64
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import httpx
from ollama import AsyncClient, ResponseError

from jwst_cosmos.errors import ConnectivityError, NotConnectedError, ProtocolError
from jwst_cosmos.progress import ProgressChannel
from jwst_cosmos.validation.sanitize import sanitize_image_path, sanitize_model_name

from .retry import ollama_retry
from .types import OllamaModel, PullProgress, as_dict

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Map ollama/httpx failures onto the jwst_cosmos error taxonomy."""
    try:
        yield
    except ResponseError as e:
        raise ProtocolError(f"{action} failed ({e.status_code}): {e.error}") from e
    except (ConnectionError, httpx.HTTPError) as e:
        raise ConnectivityError(f"{action} failed: {e}") from e


class OllamaService:
    """
    Async Ollama client bound to a tunnel endpoint.

    Handles:
    - Connectivity checks and model listing (vision models flagged)
    - Single-shot generation, optionally with an image
    - Streamed model pulls delivered through a ProgressChannel
    - Model deletion and inspection
    """

    def __init__(self, timeout: int = 300):
        """
        Initialize Ollama service.

        Args:
            timeout: Request timeout in seconds (generous for model loading)
        """
        self._timeout = timeout
        self._base_url: str | None = None
        self.client: AsyncClient | None = None
        self._tasks: set[asyncio.Task] = set()

    def set_base_url(self, url: str) -> None:
        """Point the service at a tunnel endpoint (rebuilds the client)."""
        self._base_url = url.rstrip("/")
        self.client = AsyncClient(host=self._base_url, timeout=httpx.Timeout(self._timeout))
        logger.info(f"Ollama base URL set to {self._base_url}")

    @property
    def base_url(self) -> str | None:
        return self._base_url

    def _require_client(self) -> AsyncClient:
        if self.client is None:
            raise NotConnectedError("Ollama")
        return self.client

    @ollama_retry
    async def _list(self):
        return await self._require_client().list()

    @ollama_retry
    async def _show(self, name: str):
        return await self._require_client().show(name)

    async def is_connected(self) -> bool:
        """
        Check Ollama server reachability.

        Returns:
            True if /api/tags answers, False otherwise.
        """
        if self.client is None:
            return False
        try:
            await self.client.list()
            return True
        except Exception as e:
            logger.error(f"Ollama health check failed: {e}")
            return False

    async def list_models(self) -> list[OllamaModel]:
        """List installed models."""
        with _translate_errors("List models"):
            response = await self._list()
        return [OllamaModel.from_response(m) for m in as_dict(response).get("models") or []]

    async def list_vision_models(self) -> list[OllamaModel]:
        """List only vision-capable (multimodal) models."""
        return [m for m in await self.list_models() if m.is_vision_model]

    async def generate(
        self, model: str, prompt: str, image_base64: str | None = None
    ) -> str:
        """
        Generate a non-streamed response, optionally grounded on an image.

        Not retried: generation is not idempotent in cost.

        Returns:
            Response text.
        """
        client = self._require_client()
        model = sanitize_model_name(model)
        images = [image_base64] if image_base64 is not None else None

        logger.info(f"Generating with model={model}, image={'yes' if images else 'no'}")
        with _translate_errors("Generation"):
            response = await client.generate(
                model=model, prompt=prompt, images=images, stream=False
            )

        text = as_dict(response).get("response")
        if not isinstance(text, str):
            raise ProtocolError(f"Generation response missing text from {model}")
        logger.info(f"Generated {len(text)} chars")
        return text

    async def analyze_image(self, model: str, image_path: Path | str, prompt: str) -> str:
        """
        Describe an image with a vision model.

        Raises:
            FileNotFoundError: If the image doesn't exist
        """
        path = sanitize_image_path(image_path)
        image_base64 = base64.b64encode(path.read_bytes()).decode("ascii")
        return await self.generate(model, prompt, image_base64=image_base64)

    def pull_model(self, model_name: str) -> ProgressChannel[PullProgress]:
        """
        Start pulling a model in the background.

        Failures are delivered as a final PullProgress with error=True and a
        status starting with "Error:" rather than raised.

        Returns:
            Channel of pull progress updates, closed when the pull ends.
        """
        client = self._require_client()
        name = sanitize_model_name(model_name)
        channel: ProgressChannel[PullProgress] = ProgressChannel()

        task = asyncio.create_task(self._pull(client, name, channel), name=f"ollama-pull-{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return channel

    async def _pull(
        self, client: AsyncClient, name: str, channel: ProgressChannel[PullProgress]
    ) -> None:
        logger.info(f"Pulling model {name}")
        try:
            async for part in await client.pull(name, stream=True):
                channel.publish(PullProgress.from_response(part))
            logger.info(f"Pull of {name} finished")
        except (ResponseError, ConnectionError, httpx.HTTPError) as e:
            logger.error(f"Pull of {name} failed: {e}")
            channel.publish(PullProgress(status=f"Error: {e}", error=True))
        finally:
            channel.close()

    async def delete_model(self, model_name: str) -> None:
        """Delete an installed model."""
        client = self._require_client()
        name = sanitize_model_name(model_name)
        with _translate_errors("Delete model"):
            await client.delete(name)
        logger.info(f"Deleted model {name}")

    async def show_model(self, model_name: str) -> OllamaModel:
        """Fetch model metadata."""
        name = sanitize_model_name(model_name)
        with _translate_errors("Show model"):
            response = await self._show(name)
        return OllamaModel.from_response(response, name=name)

    async def aclose(self) -> None:
        """Cancel background pulls."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
