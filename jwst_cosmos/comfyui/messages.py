# jwst_cosmos/comfyui/messages.py
"""
ComfyUI WebSocket envelope decoding.

Frames are JSON envelopes `{"type": ..., "data": {...}}`. The three types the
client acts on decode into a discriminated union; everything else (unknown
types, malformed JSON, binary preview frames, missing fields) decodes to
IgnoredMessage. The stream is advisory, so decoding never raises.
"""

import json
import logging
from dataclasses import dataclass
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)


class ProgressData(BaseModel):
    """Sampler step counter for the running node."""

    model_config = ConfigDict(extra="ignore")

    value: int = 0
    max: int = 0
    prompt_id: str | None = None
    node: str | None = None


class ExecutingData(BaseModel):
    """Node that just started; node=None means the prompt finished."""

    model_config = ConfigDict(extra="ignore")

    node: str | None = None
    prompt_id: str | None = None


class ImageOutput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    filename: str
    subfolder: str = ""
    type: str = "output"


class OutputData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    images: list[ImageOutput] | None = None


class ExecutedData(BaseModel):
    """Outputs of a finished node."""

    model_config = ConfigDict(extra="ignore")

    node: str | None = None
    prompt_id: str | None = None
    output: OutputData | None = None

    def first_image(self) -> ImageOutput | None:
        if self.output is None or not self.output.images:
            return None
        return self.output.images[0]


class ProgressMessage(BaseModel):
    type: Literal["progress"]
    data: ProgressData


class ExecutingMessage(BaseModel):
    type: Literal["executing"]
    data: ExecutingData


class ExecutedMessage(BaseModel):
    type: Literal["executed"]
    data: ExecutedData


@dataclass(frozen=True)
class IgnoredMessage:
    """Catch-all for frames the client does not act on."""

    type: str | None
    reason: str


ServerMessage = Annotated[
    Union[ProgressMessage, ExecutingMessage, ExecutedMessage],
    Field(discriminator="type"),
]

DecodedMessage = Union[ProgressMessage, ExecutingMessage, ExecutedMessage, IgnoredMessage]

_adapter: TypeAdapter = TypeAdapter(ServerMessage)


def _peek_type(raw: str) -> str | None:
    """Best-effort read of the envelope type for logging."""
    try:
        envelope = json.loads(raw)
    except ValueError:
        return None
    if isinstance(envelope, dict) and isinstance(envelope.get("type"), str):
        return envelope["type"]
    return None


def decode_message(raw: str | bytes) -> DecodedMessage:
    """
    Decode one WebSocket frame.

    Args:
        raw: Text frame (str) or binary frame (bytes)

    Returns:
        A typed message, or IgnoredMessage when the frame is not actionable.
    """
    if isinstance(raw, bytes):
        # Binary frames carry latent previews
        return IgnoredMessage(type=None, reason="binary frame")

    try:
        return _adapter.validate_json(raw)
    except ValidationError as e:
        msg_type = _peek_type(raw)
        reason = e.errors()[0]["type"] if e.errors() else "invalid"
        return IgnoredMessage(type=msg_type, reason=reason)
