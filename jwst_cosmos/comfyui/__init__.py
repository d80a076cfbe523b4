# jwst_cosmos/comfyui/__init__.py
"""
ComfyUI generation pipeline.

Exports:
    - ComfyUIClient: Submission, streaming, download, interrupt, catalogs
    - prepare_workflow: Placeholder resolution for workflow templates
    - Progress events and job tracking types
"""

from jwst_cosmos.comfyui.client import ComfyUIClient, websocket_url
from jwst_cosmos.comfyui.events import (
    Completed,
    NodeStarted,
    ProgressEvent,
    Queued,
    StepProgress,
)
from jwst_cosmos.comfyui.jobs import (
    GenerationHandle,
    GenerationJob,
    GenerationResult,
    JobState,
)
from jwst_cosmos.comfyui.messages import decode_message
from jwst_cosmos.comfyui.workflow import load_workflow, prepare_workflow

__all__ = [
    "ComfyUIClient",
    "websocket_url",
    "prepare_workflow",
    "load_workflow",
    "decode_message",
    "ProgressEvent",
    "Queued",
    "StepProgress",
    "NodeStarted",
    "Completed",
    "GenerationJob",
    "GenerationHandle",
    "GenerationResult",
    "JobState",
]
