# tests/unit/test_config.py
"""Tests for config schema, YAML loading, and size presets."""

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from jwst_cosmos.config import CosmosConfig, get_config_path, load_config
from jwst_cosmos.sizes import SizePreset, aspect_ratio, parse_size


class TestConfigSchema:
    """Test defaults and validation."""

    def test_defaults(self):
        config = CosmosConfig()

        assert config.remote.host == "192.168.0.27"
        assert config.remote.user == "garrett"
        assert config.remote.ollama_port == 11434
        assert config.remote.comfyui_port == 8188
        assert config.remote.first_local_port == 19000
        assert config.remote.ready_timeout == 10.0
        assert config.generation.timeout == 600
        assert config.ollama.timeout == 300

    def test_unknown_keys_ignored(self):
        config = CosmosConfig(**{"remote": {"host": "gpu", "colour": "blue"}, "legacy": 1})

        assert config.remote.host == "gpu"

    def test_invalid_port_rejected(self):
        with pytest.raises(ValidationError):
            CosmosConfig(**{"remote": {"comfyui_port": 70000}})

    def test_output_dir_expands_home(self):
        config = CosmosConfig(**{"generation": {"output_dir": "~/walls"}})

        assert config.output_dir() == Path.home() / "walls"


class TestLoadConfig:
    """Test YAML loading and default creation."""

    def test_creates_default_file(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"

        config = load_config(path)

        assert path.exists()
        assert config == CosmosConfig()
        written = yaml.safe_load(path.read_text())
        assert written["remote"]["ollama_port"] == 11434

    def test_loads_existing_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("remote:\n  host: 10.1.1.1\n  ssh_key: ~/.ssh/gpu\ngeneration:\n  default_size: 4k\n")

        config = load_config(path)

        assert config.remote.host == "10.1.1.1"
        assert config.remote.ssh_key == "~/.ssh/gpu"
        assert config.generation.default_size == "4k"
        assert config.remote.user == "garrett"

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path) == CosmosConfig()

    def test_default_path_uses_platform_dir(self, tmp_path):
        with patch("jwst_cosmos.config.loader.user_config_path", return_value=tmp_path) as mock_dir:
            assert get_config_path() == tmp_path / "config.yaml"

        mock_dir.assert_called_once_with("jwst-cosmos", ensure_exists=True)


class TestSizes:
    """Test preset lookup and WxH parsing."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("hd", (1920, 1080)),
            ("QHD", (2560, 1440)),
            ("laptop", (2560, 1600)),
            ("4k", (3840, 2160)),
            ("ultrawide", (5120, 2160)),
            ("1024x768", (1024, 768)),
            (" 800X600 ", (800, 600)),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_size(text) == expected

    @pytest.mark.parametrize("text", ["", "big", "10x", "axb", "0x100", "-5x10", "1x2x3"])
    def test_malformed_falls_back(self, text):
        assert parse_size(text) == (5120, 2160)

    def test_preset_rendering(self):
        assert str(SizePreset.UHD_4K) == "3840x2160"
        assert SizePreset.LAPTOP.label == "Laptop (2560x1600)"

    def test_aspect_ratio(self):
        assert aspect_ratio(5120, 2160) == "21:9"
        assert aspect_ratio(2560, 1600) == "16:10"
        assert aspect_ratio(1920, 1080) == "16:9"
