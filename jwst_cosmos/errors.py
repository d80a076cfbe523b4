# jwst_cosmos/errors.py
"""
Error taxonomy for tunnel and generation failures.

Every failure surfaced to callers derives from CosmosError so the CLI can
report it uniformly. Transport failures, protocol violations, and empty
results are kept distinct because the user-facing remedy differs.
"""


class CosmosError(Exception):
    """Base class for all jwst-cosmos errors."""


class ProcessError(CosmosError):
    """Tunnel process could not be spawned, signalled, or died before ready."""


class ReadinessTimeout(CosmosError):
    """Tunnel never opened its local port in time. Retry by opening again."""

    def __init__(self, service_name: str, local_port: int, timeout: float) -> None:
        self.service_name = service_name
        self.local_port = local_port
        self.timeout = timeout
        super().__init__(
            f"Tunnel for {service_name} not ready on port {local_port} "
            f"after {timeout:.1f}s"
        )


class ConnectivityError(CosmosError):
    """HTTP or WebSocket transport failure."""


class NotConnectedError(ConnectivityError):
    """No base URL configured because the tunnel was never established."""

    def __init__(self, service_name: str) -> None:
        self.service_name = service_name
        super().__init__(f"{service_name} base URL not set - tunnel not established")


class ProtocolError(CosmosError):
    """Remote response is missing a field the client requires."""


class SubmissionError(ProtocolError):
    """Job submission was rejected; carries the server's error body verbatim."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Failed to queue prompt ({status_code}): {body}")


class EmptyResult(CosmosError):
    """Job finished but no output image was ever reported."""

    def __init__(self, prompt_id: str) -> None:
        self.prompt_id = prompt_id
        super().__init__(f"No output image generated for prompt {prompt_id}")


class ArtifactDownloadError(CosmosError):
    """Finished artifact could not be fetched or written to disk."""


class CancelledByUser(CosmosError):
    """Job ended after the user requested an interrupt."""

    def __init__(self, prompt_id: str) -> None:
        self.prompt_id = prompt_id
        super().__init__(f"Generation {prompt_id} cancelled by user")


class TemplateError(CosmosError, ValueError):
    """Workflow template or parameter values could not be resolved."""


class ClientBusyError(CosmosError):
    """A generation job is already active on this client."""
