# jwst_cosmos/comfyui/events.py
"""Progress events derived from the ComfyUI stream, ready for display."""

from dataclasses import dataclass
from pathlib import Path
from typing import Union


class _RenderMixin:
    fraction: float

    @property
    def percent(self) -> int:
        """Whole-number percentage, clamped to 0-100."""
        return max(0, min(100, int(self.fraction * 100)))


@dataclass(frozen=True)
class Queued(_RenderMixin):
    """Job accepted by the server, waiting to run."""

    prompt_id: str
    fraction: float = 0.0

    @property
    def status(self) -> str:
        return "Queued"


@dataclass(frozen=True)
class StepProgress(_RenderMixin):
    """Sampler step update. fraction is 0.0 when total_steps is 0."""

    step: int
    total_steps: int

    @property
    def fraction(self) -> float:
        if self.total_steps <= 0:
            return 0.0
        return self.step / self.total_steps

    @property
    def status(self) -> str:
        return f"Generating... step {self.step}/{self.total_steps}"


@dataclass(frozen=True)
class NodeStarted(_RenderMixin):
    """A workflow node began executing. fraction carries the last step fraction."""

    node_id: str
    fraction: float = 0.0

    @property
    def status(self) -> str:
        return f"Processing node: {self.node_id}"


@dataclass(frozen=True)
class Completed(_RenderMixin):
    """Artifact downloaded."""

    prompt_id: str
    image_path: Path
    fraction: float = 1.0

    @property
    def status(self) -> str:
        return "Complete"


ProgressEvent = Union[Queued, StepProgress, NodeStarted, Completed]
