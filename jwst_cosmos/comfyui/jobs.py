# jwst_cosmos/comfyui/jobs.py
"""
Generation job tracking.

A job exists only once the server has issued a prompt_id. Its state is
written exclusively by the streaming task that owns it.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from jwst_cosmos.progress import ProgressChannel

from .events import ProgressEvent


class JobState(Enum):
    """Job lifecycle states."""

    QUEUED = "queued"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED})


@dataclass
class GenerationJob:
    """
    One submitted workflow.

    output_filename is the candidate artifact; later `executed` messages
    overwrite it (last writer wins).
    """

    prompt_id: str
    client_id: str
    workflow: dict
    state: JobState = JobState.QUEUED
    current_node: str | None = None
    output_filename: str | None = None
    output_subfolder: str = ""
    interrupt_requested: bool = False
    artifact: Path | None = None
    error: str | None = None  # Error message if state=FAILED

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass(frozen=True)
class GenerationResult:
    """Downloaded artifact of a completed job."""

    image_path: Path
    prompt_id: str


@dataclass
class GenerationHandle:
    """What generate() hands back: the job, its progress stream, its outcome."""

    job: GenerationJob
    progress: ProgressChannel[ProgressEvent]
    task: asyncio.Task = field(repr=False)

    @property
    def prompt_id(self) -> str:
        return self.job.prompt_id

    async def result(self) -> GenerationResult:
        """Wait for the job; raises the job's typed failure."""
        return await self.task
