# jwst_cosmos/tunnel/channel.py
"""
One SSH local port-forward, owned as a scoped resource.

The forwarding process never announces readiness, so readiness is inferred
by connecting to the local port. A channel whose process has exited is dead
for good; the registry replaces it instead of restarting it in place.
"""

import asyncio
import logging
import signal
import weakref
from dataclasses import dataclass
from enum import Enum
from subprocess import DEVNULL

from jwst_cosmos.config.schema import RemoteConfig
from jwst_cosmos.errors import ProcessError, ReadinessTimeout

logger = logging.getLogger(__name__)


class TunnelState(Enum):
    """Tunnel lifecycle states."""

    STARTING = "starting"
    READY = "ready"
    DEAD = "dead"


@dataclass(frozen=True)
class TunnelSpec:
    """Everything needed to spawn one port-forward."""

    service_name: str
    local_port: int
    remote_port: int
    host: str
    user: str
    ssh_key: str | None = None
    ssh_binary: str = "ssh"
    keepalive_interval: int = 30
    keepalive_count_max: int = 3

    @classmethod
    def from_config(
        cls, remote: RemoteConfig, service_name: str, local_port: int, remote_port: int
    ) -> "TunnelSpec":
        return cls(
            service_name=service_name,
            local_port=local_port,
            remote_port=remote_port,
            host=remote.host,
            user=remote.user,
            ssh_key=remote.ssh_key,
            ssh_binary=remote.ssh_binary,
            keepalive_interval=remote.keepalive_interval,
            keepalive_count_max=remote.keepalive_count_max,
        )

    def command(self) -> list[str]:
        """
        Build the ssh argv.

        BatchMode and the host-key options make ssh fail fast instead of
        prompting; ServerAlive* lets ssh itself notice a dead peer.
        """
        argv = [
            self.ssh_binary,
            "-N",
            "-L",
            f"{self.local_port}:localhost:{self.remote_port}",
            "-o", "StrictHostKeyChecking=no",
            "-o", "UserKnownHostsFile=/dev/null",
            "-o", "BatchMode=yes",
            "-o", f"ServerAliveInterval={self.keepalive_interval}",
            "-o", f"ServerAliveCountMax={self.keepalive_count_max}",
            "-o", "ExitOnForwardFailure=yes",
        ]
        if self.ssh_key:
            argv.extend(["-i", self.ssh_key])
        argv.append(f"{self.user}@{self.host}")
        return argv


def _kill_orphan(process: asyncio.subprocess.Process, service_name: str) -> None:
    """Last-resort kill for a channel dropped without close()."""
    if process.returncode is not None:
        return
    try:
        process.kill()
        logger.warning(f"Killed orphaned tunnel process for {service_name} (pid {process.pid})")
    except (ProcessLookupError, RuntimeError, OSError):
        pass


class TunnelChannel:
    """
    SSH port-forward child process with readiness, liveness, and teardown.

    Use as `async with await TunnelChannel.open(spec) as channel:` or call
    close() in a finally block. A finalizer kills the process if the channel
    is garbage collected (or the interpreter exits) while still running.
    """

    POLL_INTERVAL = 0.1
    CONNECT_TIMEOUT = 1.0

    def __init__(
        self,
        spec: TunnelSpec,
        process: asyncio.subprocess.Process,
        grace_period: float = 0.5,
    ) -> None:
        self.spec = spec
        self.state = TunnelState.STARTING
        self._process = process
        self._grace_period = grace_period
        self._finalizer = weakref.finalize(self, _kill_orphan, process, spec.service_name)

    @classmethod
    async def open(cls, spec: TunnelSpec) -> "TunnelChannel":
        """
        Spawn the forwarding process, detached from our session and stdio.

        Raises:
            ProcessError: If the binary is missing or the arguments are rejected
        """
        argv = spec.command()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=DEVNULL,
                stdout=DEVNULL,
                stderr=DEVNULL,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            raise ProcessError(f"Failed to start SSH tunnel for {spec.service_name}: {e}") from e

        logger.info(
            f"Started tunnel for {spec.service_name}: localhost:{spec.local_port} -> "
            f"{spec.host}:{spec.remote_port} (pid {process.pid})"
        )
        return cls(spec, process)

    @property
    def service_name(self) -> str:
        return self.spec.service_name

    @property
    def local_port(self) -> int:
        return self.spec.local_port

    @property
    def local_url(self) -> str:
        """HTTP endpoint of the forwarded service."""
        return f"http://localhost:{self.spec.local_port}"

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def exit_code(self) -> int | None:
        return self._process.returncode

    def is_alive(self) -> bool:
        """Non-blocking exit check. Once dead, always dead."""
        if self.state is TunnelState.DEAD:
            return False
        if self._process.returncode is not None:
            self.state = TunnelState.DEAD
            return False
        return True

    async def _probe(self) -> bool:
        """Attempt one raw TCP connect to the local end of the forward."""
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection("127.0.0.1", self.spec.local_port),
                timeout=self.CONNECT_TIMEOUT,
            )
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def wait_ready(self, timeout: float) -> None:
        """
        Poll the local port until it accepts connections.

        The process is terminated before any error propagates, so a failed
        readiness wait never leaves a forwarding process behind.

        Raises:
            ProcessError: If the process exits while waiting
            ReadinessTimeout: If the port is not connectable within timeout
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        try:
            while True:
                if not self.is_alive():
                    raise ProcessError(
                        f"SSH tunnel process for {self.service_name} died "
                        f"(exit code {self.exit_code})"
                    )
                if await self._probe():
                    self.state = TunnelState.READY
                    logger.info(f"Tunnel for {self.service_name} ready at {self.local_url}")
                    return
                if loop.time() >= deadline:
                    raise ReadinessTimeout(self.service_name, self.local_port, timeout)
                await asyncio.sleep(self.POLL_INTERVAL)
        except BaseException:
            await asyncio.shield(self.close())
            raise

    async def close(self) -> None:
        """
        Terminate and reap the process: SIGTERM, grace window, SIGKILL.

        Idempotent. Safe to call on an already-exited process. If close() is
        cancelled or fails partway, the process is killed before returning
        and the finalizer stays attached until it has been reaped.
        """
        process = self._process

        try:
            if process.returncode is None:
                try:
                    process.send_signal(signal.SIGTERM)
                except ProcessLookupError:
                    pass
                except OSError as e:
                    raise ProcessError(
                        f"Failed to signal tunnel for {self.service_name}: {e}"
                    ) from e

                try:
                    await asyncio.wait_for(process.wait(), timeout=self._grace_period)
                except asyncio.TimeoutError:
                    logger.warning(
                        f"Tunnel for {self.service_name} ignored SIGTERM, killing pid {process.pid}"
                    )
                    try:
                        process.kill()
                    except ProcessLookupError:
                        pass
                    await process.wait()

                logger.info(
                    f"Closed tunnel for {self.service_name} (exit code {process.returncode})"
                )
        finally:
            if process.returncode is None:
                try:
                    process.kill()
                    logger.warning(
                        f"Close of tunnel for {self.service_name} interrupted, "
                        f"killed pid {process.pid}"
                    )
                except (ProcessLookupError, OSError):
                    pass
            else:
                self._finalizer.detach()
            self.state = TunnelState.DEAD

    async def __aenter__(self) -> "TunnelChannel":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return (
            f"TunnelChannel(service={self.service_name!r}, local_port={self.local_port}, "
            f"state={self.state.value})"
        )
