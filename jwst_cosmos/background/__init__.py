# jwst_cosmos/background/__init__.py
"""
Session lifecycle and shutdown handling.

Exports:
    - RemoteSession: Tunnel + client coordination
    - TunnelStatus: Per-service connection state
    - setup_signal_handlers: Graceful shutdown signal handling
"""

from jwst_cosmos.background.lifecycle import RemoteSession, TunnelStatus
from jwst_cosmos.background.signals import setup_signal_handlers

__all__ = ["RemoteSession", "TunnelStatus", "setup_signal_handlers"]
