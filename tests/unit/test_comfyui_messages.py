# tests/unit/test_comfyui_messages.py
"""Tests for WebSocket envelope decoding and derived progress events."""

import json
from pathlib import Path

from jwst_cosmos.comfyui.events import Completed, NodeStarted, Queued, StepProgress
from jwst_cosmos.comfyui.messages import (
    ExecutedMessage,
    ExecutingMessage,
    IgnoredMessage,
    ProgressMessage,
    decode_message,
)


def _frame(msg_type: str, data: dict) -> str:
    return json.dumps({"type": msg_type, "data": data})


class TestDecodeMessage:
    """Test the tagged union and its catch-all."""

    def test_progress(self):
        message = decode_message(_frame("progress", {"value": 5, "max": 20, "prompt_id": "p1"}))

        assert isinstance(message, ProgressMessage)
        assert message.data.value == 5
        assert message.data.max == 20
        assert message.data.prompt_id == "p1"

    def test_executing_node(self):
        message = decode_message(_frame("executing", {"node": "3", "prompt_id": "p1"}))

        assert isinstance(message, ExecutingMessage)
        assert message.data.node == "3"

    def test_executing_null_node(self):
        message = decode_message(_frame("executing", {"node": None, "prompt_id": "p1"}))

        assert isinstance(message, ExecutingMessage)
        assert message.data.node is None

    def test_executed_with_images(self):
        raw = _frame(
            "executed",
            {
                "node": "9",
                "prompt_id": "p1",
                "output": {
                    "images": [
                        {"filename": "cosmos_00001_.png", "subfolder": "", "type": "output"},
                        {"filename": "cosmos_00002_.png", "subfolder": "", "type": "output"},
                    ]
                },
            },
        )

        message = decode_message(raw)

        assert isinstance(message, ExecutedMessage)
        assert message.data.first_image().filename == "cosmos_00001_.png"

    def test_executed_without_images(self):
        message = decode_message(_frame("executed", {"node": "9", "output": {"text": ["hi"]}}))

        assert isinstance(message, ExecutedMessage)
        assert message.data.first_image() is None

    def test_unknown_type_is_ignored(self):
        message = decode_message(_frame("status", {"status": {"exec_info": {"queue_remaining": 0}}}))

        assert isinstance(message, IgnoredMessage)
        assert message.type == "status"

    def test_malformed_json_is_ignored(self):
        message = decode_message("{not json")

        assert isinstance(message, IgnoredMessage)
        assert message.type is None

    def test_missing_data_is_ignored(self):
        message = decode_message(json.dumps({"type": "progress"}))

        assert isinstance(message, IgnoredMessage)
        assert message.type == "progress"

    def test_wrong_field_type_is_ignored(self):
        message = decode_message(_frame("progress", {"value": "five", "max": 20}))

        assert isinstance(message, IgnoredMessage)

    def test_binary_frame_is_ignored(self):
        message = decode_message(b"\x00\x00\x00\x01preview")

        assert isinstance(message, IgnoredMessage)
        assert message.reason == "binary frame"


class TestProgressEvents:
    """Test fraction and status rendering."""

    def test_step_fraction(self):
        event = StepProgress(step=5, total_steps=20)

        assert event.fraction == 0.25
        assert event.percent == 25
        assert event.status == "Generating... step 5/20"

    def test_zero_total_steps_is_zero_fraction(self):
        event = StepProgress(step=3, total_steps=0)

        assert event.fraction == 0.0
        assert event.percent == 0

    def test_node_started_carries_fraction(self):
        event = NodeStarted(node_id="7", fraction=0.5)

        assert event.status == "Processing node: 7"
        assert event.percent == 50

    def test_queued_and_completed(self):
        assert Queued(prompt_id="p1").fraction == 0.0
        completed = Completed(prompt_id="p1", image_path=Path("/tmp/x.png"))
        assert completed.fraction == 1.0
        assert completed.status == "Complete"
