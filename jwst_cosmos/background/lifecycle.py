# jwst_cosmos/background/lifecycle.py
"""
Remote session lifecycle management.

Coordinates tunnel startup (both services, errors collected rather than
raised), client wiring, and shutdown.
"""

import logging
from dataclasses import dataclass, field

from jwst_cosmos.comfyui.client import ComfyUIClient
from jwst_cosmos.config.schema import CosmosConfig
from jwst_cosmos.errors import CosmosError
from jwst_cosmos.llm.client import OllamaService
from jwst_cosmos.tunnel.registry import COMFYUI, OLLAMA, TunnelRegistry

logger = logging.getLogger(__name__)


@dataclass
class TunnelStatus:
    """Connection state of both remote services."""

    ollama: bool = False
    comfyui: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def connected(self) -> bool:
        """True when at least one service is reachable."""
        return self.ollama or self.comfyui


class RemoteSession:
    """
    Remote session coordinator.

    Manages:
        - Tunnel registry for Ollama and ComfyUI
        - Base URLs of both service clients
        - Interrupting an active generation on shutdown
    """

    def __init__(
        self,
        config: CosmosConfig | None = None,
        registry: TunnelRegistry | None = None,
        comfyui: ComfyUIClient | None = None,
        ollama: OllamaService | None = None,
    ) -> None:
        """
        Initialize remote session.

        Args:
            config: Loaded configuration (defaults when None)
            registry: Tunnel registry (built from config.remote when None)
            comfyui: ComfyUI client (built from config.generation when None)
            ollama: Ollama service (built from config.ollama when None)
        """
        self._config = config or CosmosConfig()
        self._registry = registry or TunnelRegistry(self._config.remote)
        self._comfyui = comfyui or ComfyUIClient(timeout=self._config.generation.timeout)
        self._ollama = ollama or OllamaService(timeout=self._config.ollama.timeout)
        self._closed = False

    @property
    def config(self) -> CosmosConfig:
        return self._config

    @property
    def registry(self) -> TunnelRegistry:
        return self._registry

    @property
    def comfyui(self) -> ComfyUIClient:
        return self._comfyui

    @property
    def ollama(self) -> OllamaService:
        return self._ollama

    async def connect(self) -> TunnelStatus:
        """
        Open tunnels for both services and point the clients at them.

        One service failing does not prevent the other from connecting.

        Returns:
            TunnelStatus with per-service success and collected error messages.
        """
        status = TunnelStatus()

        try:
            url = await self._registry.get_ollama_endpoint()
            self._ollama.set_base_url(url)
            status.ollama = True
        except CosmosError as e:
            logger.error(f"Ollama tunnel failed: {e}")
            status.errors.append(f"Ollama: {e}")

        try:
            url = await self._registry.get_comfyui_endpoint()
            self._comfyui.set_base_url(url)
            status.comfyui = True
        except CosmosError as e:
            logger.error(f"ComfyUI tunnel failed: {e}")
            status.errors.append(f"ComfyUI: {e}")

        logger.info(f"Connect finished: ollama={status.ollama}, comfyui={status.comfyui}")
        return status

    def refresh_status(self) -> TunnelStatus:
        """Re-check tunnel liveness without spawning anything."""
        return TunnelStatus(
            ollama=self._registry.is_active(OLLAMA),
            comfyui=self._registry.is_active(COMFYUI),
        )

    async def disconnect(self) -> TunnelStatus:
        """Close every tunnel."""
        await self._registry.close_all()
        logger.info("Disconnected from remote host")
        return TunnelStatus()

    async def toggle(self) -> TunnelStatus:
        """Disconnect if any tunnel is up, otherwise connect."""
        if self.refresh_status().connected:
            return await self.disconnect()
        return await self.connect()

    async def shutdown(self) -> None:
        """
        Shut down the session.

        Steps:
            1. Interrupt the active generation (if any)
            2. Cancel background model pulls
            3. Close the HTTP client and every tunnel
        """
        if self._closed:
            return
        self._closed = True
        logger.info("Shutting down remote session...")

        if self._comfyui.active_job is not None:
            try:
                await self._comfyui.interrupt()
            except CosmosError as e:
                logger.warning(f"Interrupt during shutdown failed: {e}")

        await self._ollama.aclose()
        await self._comfyui.aclose()
        await self._registry.close_all()

        logger.info("Remote session shutdown complete")

    async def __aenter__(self) -> "RemoteSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()
