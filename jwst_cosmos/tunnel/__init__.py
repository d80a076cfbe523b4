# jwst_cosmos/tunnel/__init__.py
"""
SSH tunnel management.

Exports:
    - TunnelChannel: One port-forward process with readiness and teardown
    - TunnelRegistry: Service name to tunnel mapping
    - TunnelSpec, TunnelState: Channel parameters and lifecycle states
"""

from jwst_cosmos.tunnel.channel import TunnelChannel, TunnelSpec, TunnelState
from jwst_cosmos.tunnel.registry import COMFYUI, OLLAMA, TunnelRegistry

__all__ = [
    "TunnelChannel",
    "TunnelSpec",
    "TunnelState",
    "TunnelRegistry",
    "OLLAMA",
    "COMFYUI",
]
