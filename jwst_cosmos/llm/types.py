# jwst_cosmos/llm/types.py
"""Normalized Ollama model and pull-progress types."""

from dataclasses import dataclass, field
from typing import Any

VISION_MARKERS = ("llava", "moondream", "bakllava", "vision")


def as_dict(obj: Any) -> dict:
    """Accept both ollama response objects and plain dicts."""
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    return {}


@dataclass
class ModelDetails:
    format: str | None = None
    family: str | None = None
    parameter_size: str | None = None
    quantization_level: str | None = None

    @classmethod
    def from_response(cls, data: Any) -> "ModelDetails | None":
        if data is None:
            return None
        details = as_dict(data)
        return cls(
            format=details.get("format"),
            family=details.get("family"),
            parameter_size=details.get("parameter_size"),
            quantization_level=details.get("quantization_level"),
        )


@dataclass
class OllamaModel:
    """A model installed on the remote Ollama server."""

    name: str
    size: int = 0
    digest: str = ""
    modified_at: str | None = None
    details: ModelDetails | None = None

    @classmethod
    def from_response(cls, data: Any, name: str | None = None) -> "OllamaModel":
        """
        Build from an /api/tags entry or /api/show response.

        Newer ollama clients report the name under "model", older ones under "name".
        """
        entry = as_dict(data)
        modified = entry.get("modified_at")
        return cls(
            name=name or entry.get("model") or entry.get("name") or "",
            size=entry.get("size") or 0,
            digest=entry.get("digest") or "",
            modified_at=str(modified) if modified is not None else None,
            details=ModelDetails.from_response(entry.get("details")),
        )

    @property
    def size_str(self) -> str:
        """Human-readable size (GB above 1 GiB, MB otherwise)."""
        gb = self.size / 1_073_741_824
        if gb >= 1.0:
            return f"{gb:.1f} GB"
        return f"{self.size / 1_048_576:.0f} MB"

    @property
    def is_vision_model(self) -> bool:
        """Heuristic: multimodal model families carry these markers in their name."""
        name = self.name.lower()
        return any(marker in name for marker in VISION_MARKERS)


@dataclass
class PullProgress:
    """One progress line of a model pull."""

    status: str
    digest: str | None = None
    total: int | None = None
    completed: int | None = None
    error: bool = field(default=False, repr=False)

    @classmethod
    def from_response(cls, data: Any) -> "PullProgress":
        entry = as_dict(data)
        return cls(
            status=entry.get("status") or "",
            digest=entry.get("digest"),
            total=entry.get("total"),
            completed=entry.get("completed"),
        )

    @property
    def fraction(self) -> float:
        """Layer download fraction; 0.0 when totals are unknown."""
        if not self.total or self.completed is None:
            return 0.0
        return self.completed / self.total
