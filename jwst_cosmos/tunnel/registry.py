# jwst_cosmos/tunnel/registry.py
"""
Service-name to tunnel mapping with lazy creation and dead-tunnel recycling.

All check-then-act sequences (is it alive? allocate a port, spawn, insert)
run under one asyncio.Lock so concurrent callers never spawn two tunnels for
the same service.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from jwst_cosmos.config.schema import RemoteConfig
from jwst_cosmos.errors import ProcessError

from .channel import TunnelChannel, TunnelSpec

logger = logging.getLogger(__name__)

OLLAMA = "ollama"
COMFYUI = "comfyui"

ChannelFactory = Callable[[TunnelSpec], Awaitable[TunnelChannel]]


class TunnelRegistry:
    """
    Owns every tunnel; at most one per service name.

    Local ports come from a counter that only moves forward, so a port freed
    by a dead tunnel (possibly still in TIME_WAIT) is never handed out again
    within this process.
    """

    MAX_PORT = 65535

    def __init__(
        self,
        remote: RemoteConfig,
        channel_factory: ChannelFactory | None = None,
    ) -> None:
        """
        Initialize tunnel registry.

        Args:
            remote: SSH host, user, key and remote service ports
            channel_factory: Coroutine that spawns a channel (defaults to TunnelChannel.open)
        """
        self._remote = remote
        self._factory = channel_factory or TunnelChannel.open
        self._tunnels: dict[str, TunnelChannel] = {}
        self._next_local_port = remote.first_local_port
        self._lock = asyncio.Lock()

    def _allocate_port(self) -> int:
        port = self._next_local_port
        if port > self.MAX_PORT:
            raise ProcessError("No local ports left for new tunnels")
        self._next_local_port += 1
        return port

    async def get_endpoint(self, service_name: str, remote_port: int) -> str:
        """
        Return a ready local URL for service_name, spawning a tunnel if needed.

        A live tunnel's cached URL is returned without re-probing. A dead one
        is closed and replaced.

        Raises:
            ProcessError: If the tunnel cannot be spawned or dies while starting
            ReadinessTimeout: If the tunnel never opens its port
        """
        async with self._lock:
            tunnel = self._tunnels.get(service_name)
            if tunnel is not None:
                if tunnel.is_alive():
                    return tunnel.local_url
                logger.warning(
                    f"Tunnel for {service_name} died (exit code {tunnel.exit_code}), replacing"
                )
                del self._tunnels[service_name]
                await tunnel.close()

            spec = TunnelSpec.from_config(
                self._remote, service_name, self._allocate_port(), remote_port
            )
            tunnel = await self._factory(spec)
            try:
                await tunnel.wait_ready(self._remote.ready_timeout)
            except BaseException:
                await tunnel.close()
                raise

            self._tunnels[service_name] = tunnel
            return tunnel.local_url

    async def get_ollama_endpoint(self) -> str:
        """Get a tunnel for Ollama."""
        return await self.get_endpoint(OLLAMA, self._remote.ollama_port)

    async def get_comfyui_endpoint(self) -> str:
        """Get a tunnel for ComfyUI."""
        return await self.get_endpoint(COMFYUI, self._remote.comfyui_port)

    def is_active(self, service_name: str) -> bool:
        """Lazy liveness check; no background health task exists."""
        tunnel = self._tunnels.get(service_name)
        return tunnel is not None and tunnel.is_alive()

    def status(self) -> dict[str, bool]:
        """Liveness of every tracked tunnel."""
        return {name: tunnel.is_alive() for name, tunnel in self._tunnels.items()}

    async def close(self, service_name: str) -> None:
        """Close a specific tunnel (no-op if untracked)."""
        async with self._lock:
            tunnel = self._tunnels.pop(service_name, None)
            if tunnel is not None:
                await tunnel.close()

    async def close_all(self) -> None:
        """Terminate every tracked tunnel, even if some fail to close."""
        async with self._lock:
            tunnels = list(self._tunnels.items())
            self._tunnels.clear()
            results = await asyncio.gather(
                *(tunnel.close() for _, tunnel in tunnels), return_exceptions=True
            )

        for (name, _), result in zip(tunnels, results):
            if isinstance(result, BaseException):
                logger.error(f"Failed to close tunnel for {name}: {result}")
        if tunnels:
            logger.info(f"Closed {len(tunnels)} tunnel(s)")

    async def __aenter__(self) -> "TunnelRegistry":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close_all()
