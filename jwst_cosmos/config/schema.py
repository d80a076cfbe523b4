# jwst_cosmos/config/schema.py
"""
Pydantic configuration models for jwst-cosmos.

All models use extra="ignore" to allow unknown YAML keys without crashing.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class RemoteConfig(BaseModel):
    """Remote GPU host reached over SSH."""

    model_config = ConfigDict(extra="ignore")

    host: str = Field(default="192.168.0.27", description="Remote host address")
    user: str = Field(default="garrett", description="SSH user")
    ollama_port: int = Field(
        default=11434, ge=1, le=65535, description="Ollama port on the remote host"
    )
    comfyui_port: int = Field(
        default=8188, ge=1, le=65535, description="ComfyUI port on the remote host"
    )
    ssh_key: str | None = Field(default=None, description="SSH identity file (None = agent/default)")
    ssh_binary: str = Field(default="ssh", description="SSH executable used for port forwarding")
    ready_timeout: float = Field(
        default=10.0, gt=0.0, description="Seconds to wait for a tunnel port to accept connections"
    )
    first_local_port: int = Field(
        default=19000, ge=1024, le=65535, description="First local port handed out to tunnels"
    )
    keepalive_interval: int = Field(
        default=30, ge=1, description="ServerAliveInterval passed to ssh (seconds)"
    )
    keepalive_count_max: int = Field(
        default=3, ge=1, description="ServerAliveCountMax passed to ssh"
    )


class GenerationConfig(BaseModel):
    """Image generation defaults."""

    model_config = ConfigDict(extra="ignore")

    default_size: str = Field(default="5120x2160", description="Preset name or WIDTHxHEIGHT")
    default_model: str = Field(default="sdxl", description="Default checkpoint name")
    output_dir: str = Field(
        default="~/Pictures/Wallpapers", description="Directory generated images are saved to"
    )
    timeout: int = Field(
        default=600, description="HTTP timeout in seconds (image synthesis is slow)"
    )
    enable_upscaling: bool = Field(default=True, description="Enable AI upscaling")
    upscale_model: str = Field(default="realesrgan-x4plus", description="Upscale model name")


class OllamaConfig(BaseModel):
    """Remote Ollama server settings."""

    model_config = ConfigDict(extra="ignore")

    timeout: int = Field(
        default=300, description="Request timeout in seconds (generous for model loading)"
    )
    vision_model: str = Field(default="llava", description="Default model for image description")


class CosmosConfig(BaseModel):
    """Root configuration for jwst-cosmos."""

    model_config = ConfigDict(extra="ignore")

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)

    @staticmethod
    def expand_path(path: str) -> Path:
        """Expand a leading ~ to the user's home directory."""
        return Path(path).expanduser()

    def output_dir(self) -> Path:
        """Resolved directory for generated images."""
        return self.expand_path(self.generation.output_dir)
