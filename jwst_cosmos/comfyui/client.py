# jwst_cosmos/comfyui/client.py
"""ComfyUI client: templated submission, WebSocket progress, artifact download."""

import asyncio
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

import httpx
import websockets
from websockets.exceptions import WebSocketException

from jwst_cosmos.errors import (
    ArtifactDownloadError,
    CancelledByUser,
    ClientBusyError,
    ConnectivityError,
    CosmosError,
    EmptyResult,
    NotConnectedError,
    ProtocolError,
    SubmissionError,
)
from jwst_cosmos.progress import DEFAULT_CAPACITY, ProgressChannel
from jwst_cosmos.validation.sanitize import sanitize_output_filename

from .events import Completed, NodeStarted, ProgressEvent, Queued, StepProgress
from .jobs import GenerationHandle, GenerationJob, GenerationResult, JobState
from .messages import (
    ExecutedMessage,
    ExecutingMessage,
    IgnoredMessage,
    ProgressMessage,
    decode_message,
)
from .workflow import prepare_workflow

logger = logging.getLogger(__name__)


def websocket_url(base_url: str, client_id: str) -> str:
    """Map an http(s) base URL to the client-scoped ws(s) endpoint."""
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return f"{base}/ws?{urlencode({'clientId': client_id})}"


def _dig(data: Any, path: list[str | int]) -> Any:
    """Follow a key/index path through nested JSON, None on any mismatch."""
    for step in path:
        if isinstance(step, int):
            if not isinstance(data, list) or len(data) <= step:
                return None
        elif not isinstance(data, dict) or step not in data:
            return None
        data = data[step]
    return data


class ComfyUIClient:
    """
    Async ComfyUI client with one active generation job at a time.

    Handles:
    - Workflow templating and submission (POST /prompt)
    - Progress streaming over a client-scoped WebSocket
    - Artifact download (GET /view)
    - Out-of-band interrupt and queue clearing
    - Checkpoint/LoRA catalog discovery
    """

    def __init__(
        self,
        timeout: int = 600,
        http_client: httpx.AsyncClient | None = None,
        client_id: str | None = None,
        progress_capacity: int = DEFAULT_CAPACITY,
    ):
        """
        Initialize ComfyUI client.

        Args:
            timeout: HTTP timeout in seconds (long: image synthesis is slow)
            http_client: Preconfigured httpx client (tests inject a mock transport)
            client_id: Correlation id for the WebSocket subscription (random if None)
            progress_capacity: Bound of each job's progress channel
        """
        self.client_id = client_id or uuid.uuid4().hex
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._progress_capacity = progress_capacity
        self._base_url: str | None = None
        self._active_job: GenerationJob | None = None
        self._busy = False

    def set_base_url(self, url: str) -> None:
        """Point the client at a tunnel endpoint."""
        self._base_url = url.rstrip("/")
        logger.info(f"ComfyUI base URL set to {self._base_url}")

    @property
    def base_url(self) -> str | None:
        return self._base_url

    @property
    def active_job(self) -> GenerationJob | None:
        """The job currently streaming, if any."""
        return self._active_job

    def _require_base_url(self) -> str:
        if self._base_url is None:
            raise NotConnectedError("ComfyUI")
        return self._base_url

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        base_url = self._require_base_url()
        try:
            return await self._http.request(method, f"{base_url}{path}", **kwargs)
        except httpx.HTTPError as e:
            raise ConnectivityError(f"ComfyUI {method} {path} failed: {e}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_error:
            raise ProtocolError(f"Failed to {action}: {response.status_code} {response.text}")

    async def is_connected(self) -> bool:
        """Probe /system_stats. Never raises."""
        try:
            response = await self._request("GET", "/system_stats")
        except ConnectivityError as e:
            logger.debug(f"ComfyUI connectivity probe failed: {e}")
            return False
        return response.is_success

    async def upload_image(self, image_path: Path | str) -> str:
        """
        Upload a reference image for img2img/ControlNet workflows.

        Returns:
            Server-side image name to substitute into the workflow.

        Raises:
            OSError: If the local file cannot be read
            ProtocolError: If the upload is rejected or the response lacks a name
        """
        path = Path(image_path)
        content = path.read_bytes()
        mime = mimetypes.guess_type(path.name)[0] or "image/jpeg"

        response = await self._request(
            "POST",
            "/upload/image",
            files={"image": (path.name, content, mime)},
            data={"overwrite": "true"},
        )
        if response.is_error:
            raise ProtocolError(f"Upload failed: {response.text}")

        try:
            name = response.json().get("name")
        except (ValueError, AttributeError):
            name = None
        if not isinstance(name, str) or not name:
            raise ProtocolError(f"Upload response missing image name: {response.text}")

        logger.info(f"Uploaded {path.name} as {name}")
        return name

    async def queue_prompt(self, workflow: dict) -> str:
        """
        Submit a resolved workflow.

        Returns:
            Server-issued prompt_id.

        Raises:
            SubmissionError: Non-success status, with the server body verbatim
            ProtocolError: Response without a prompt_id
        """
        response = await self._request(
            "POST", "/prompt", json={"prompt": workflow, "client_id": self.client_id}
        )
        if response.is_error:
            raise SubmissionError(response.status_code, response.text)

        try:
            body = response.json()
        except ValueError as e:
            raise ProtocolError(f"Prompt response is not JSON: {response.text}") from e

        prompt_id = body.get("prompt_id") if isinstance(body, dict) else None
        if not isinstance(prompt_id, str) or not prompt_id:
            raise ProtocolError(f"Prompt response missing prompt_id: {response.text}")

        logger.info(f"Queued prompt {prompt_id}")
        return prompt_id

    async def generate(
        self,
        template: str | dict,
        params: dict[str, Any],
        output_dir: Path | str,
    ) -> GenerationHandle:
        """
        Resolve, submit, and start streaming a generation job.

        Submission happens before this returns; streaming and download run
        in a background task.

        Args:
            template: Workflow template (JSON text or dict) with {{name}} placeholders
            params: Placeholder values
            output_dir: Directory the artifact is saved to

        Returns:
            GenerationHandle with the job, its progress channel, and its task.

        Raises:
            ClientBusyError: If a job is already active on this client
            TemplateError, SubmissionError, ProtocolError, ConnectivityError
        """
        if self._busy:
            raise ClientBusyError("A generation job is already in progress")
        self._busy = True

        try:
            base_url = self._require_base_url()
            workflow = prepare_workflow(template, params)
            prompt_id = await self.queue_prompt(workflow)
        except BaseException:
            self._busy = False
            raise

        job = GenerationJob(prompt_id=prompt_id, client_id=self.client_id, workflow=workflow)
        channel: ProgressChannel[ProgressEvent] = ProgressChannel(self._progress_capacity)
        self._active_job = job

        task = asyncio.create_task(
            self._run_job(job, base_url, Path(output_dir), channel),
            name=f"comfyui-{prompt_id}",
        )
        return GenerationHandle(job=job, progress=channel, task=task)

    async def _run_job(
        self,
        job: GenerationJob,
        base_url: str,
        output_dir: Path,
        channel: ProgressChannel[ProgressEvent],
    ) -> GenerationResult:
        """Stream events, then download the artifact. Owns job state."""
        channel.publish(Queued(prompt_id=job.prompt_id))
        try:
            try:
                completed = await self._stream_events(job, base_url, channel)
            except ConnectivityError:
                if job.interrupt_requested:
                    raise CancelledByUser(job.prompt_id) from None
                raise

            if job.interrupt_requested:
                raise CancelledByUser(job.prompt_id)
            if not completed:
                raise ConnectivityError(
                    f"WebSocket closed before prompt {job.prompt_id} completed"
                )
            if job.output_filename is None:
                raise EmptyResult(job.prompt_id)

            image_path = await self.download_artifact(
                job.output_filename, output_dir, subfolder=job.output_subfolder
            )
            job.artifact = image_path
            job.state = JobState.COMPLETED
            channel.publish(Completed(prompt_id=job.prompt_id, image_path=image_path))
            logger.info(f"Prompt {job.prompt_id} completed: {image_path}")
            return GenerationResult(image_path=image_path, prompt_id=job.prompt_id)

        except CancelledByUser:
            job.state = JobState.CANCELLED
            logger.info(f"Prompt {job.prompt_id} cancelled")
            raise

        except asyncio.CancelledError:
            job.state = JobState.CANCELLED
            logger.warning(f"Streaming task for prompt {job.prompt_id} cancelled")
            raise

        except CosmosError as e:
            job.state = JobState.FAILED
            job.error = f"{type(e).__name__}: {e}"
            logger.error(f"Prompt {job.prompt_id} failed: {job.error}")
            raise

        finally:
            channel.close()
            self._active_job = None
            self._busy = False

    async def _stream_events(
        self,
        job: GenerationJob,
        base_url: str,
        channel: ProgressChannel[ProgressEvent],
    ) -> bool:
        """
        Read the WebSocket until this job's completion signal.

        Returns:
            True on the completion signal (`executing` with no node and this
            job's prompt_id), False if the server closed the socket cleanly
            without one.

        Raises:
            ConnectivityError: On connect failure or abnormal close
        """
        url = websocket_url(base_url, self.client_id)
        last_fraction = 0.0

        try:
            async with websockets.connect(url, max_size=None) as ws:
                async for raw in ws:
                    message = decode_message(raw)

                    if isinstance(message, IgnoredMessage):
                        continue

                    data = message.data
                    if data.prompt_id is not None and data.prompt_id != job.prompt_id:
                        continue

                    if isinstance(message, ProgressMessage):
                        event = StepProgress(step=data.value, total_steps=data.max)
                        last_fraction = event.fraction
                        channel.publish(event)

                    elif isinstance(message, ExecutingMessage):
                        if data.node is None:
                            if data.prompt_id == job.prompt_id:
                                return True
                            continue
                        job.state = JobState.EXECUTING
                        job.current_node = data.node
                        channel.publish(NodeStarted(node_id=data.node, fraction=last_fraction))

                    elif isinstance(message, ExecutedMessage):
                        image = data.first_image()
                        if image is not None:
                            job.output_filename = image.filename
                            job.output_subfolder = image.subfolder

        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            raise ConnectivityError(f"ComfyUI WebSocket error: {e}") from e

        return False

    async def download_artifact(
        self, filename: str, output_dir: Path | str, subfolder: str = ""
    ) -> Path:
        """
        Fetch an output image and write it under output_dir.

        The file is streamed to a .part file and renamed on success, so a
        failed download never leaves a truncated image behind.

        Raises:
            ArtifactDownloadError: On unsafe filename, HTTP failure, or write failure
        """
        try:
            safe_name = sanitize_output_filename(filename)
        except ValueError as e:
            raise ArtifactDownloadError(str(e)) from e

        base_url = self._require_base_url()
        output_dir = Path(output_dir)
        output_path = output_dir / safe_name
        partial_path = output_path.with_name(output_path.name + ".part")

        params = {"filename": filename, "type": "output"}
        if subfolder:
            params["subfolder"] = subfolder

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            async with self._http.stream("GET", f"{base_url}/view", params=params) as response:
                if response.is_error:
                    body = (await response.aread()).decode(errors="replace")
                    raise ArtifactDownloadError(
                        f"Failed to download {filename} ({response.status_code}): {body}"
                    )
                with partial_path.open("wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
            partial_path.replace(output_path)

        except httpx.HTTPError as e:
            partial_path.unlink(missing_ok=True)
            raise ArtifactDownloadError(f"Failed to download {filename}: {e}") from e
        except OSError as e:
            partial_path.unlink(missing_ok=True)
            raise ArtifactDownloadError(f"Failed to write {output_path}: {e}") from e

        logger.info(f"Saved {filename} to {output_path}")
        return output_path

    async def interrupt(self) -> None:
        """
        Ask the server to abort the running prompt.

        Advisory only: the active job resolves as cancelled once its stream
        ends, which the server decides.
        """
        response = await self._request("POST", "/interrupt")
        self._raise_for_status(response, "interrupt")
        if self._active_job is not None:
            self._active_job.interrupt_requested = True
            logger.info(f"Interrupt requested for prompt {self._active_job.prompt_id}")

    async def clear_queue(self) -> None:
        """Drop every pending prompt from the server queue."""
        response = await self._request("POST", "/queue", json={"clear": True})
        self._raise_for_status(response, "clear queue")

    async def _list_node_options(self, node_type: str, input_name: str) -> list[str]:
        response = await self._request("GET", f"/object_info/{node_type}")
        self._raise_for_status(response, f"get {node_type} info")

        try:
            info = response.json()
        except ValueError:
            logger.warning(f"{node_type} info is not JSON")
            return []

        options = _dig(info, [node_type, "input", "required", input_name, 0])
        if not isinstance(options, list):
            return []
        return [option for option in options if isinstance(option, str)]

    async def list_checkpoints(self) -> list[str]:
        """Available checkpoints; empty if the server reports none."""
        return await self._list_node_options("CheckpointLoaderSimple", "ckpt_name")

    async def list_loras(self) -> list[str]:
        """Available LoRAs; empty if the server reports none."""
        return await self._list_node_options("LoraLoader", "lora_name")

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "ComfyUIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
