from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")
ENV_PREFIX = "DEMOREEL_"


class HighlightSettings(BaseModel):
    tick_duration_ms: float = Field(default=15.0, gt=0)
    gap_seconds: float = 10.0
    lead_seconds: float = 5.0
    trail_seconds: float = 2.0


class ToolSettings(BaseModel):
    parser_path: Path = Path("bin/parser/parse_demo.exe")
    renderer_path: Path = Path("bin/RenderDemo/RenderDemo.exe")
    renderer_workdir: Path = Path("bin/RenderDemo")
    game_executable: Path = Path("C:/Program Files (x86)/Steam/steamapps/common/Team Fortress 2/tf_win64.exe")
    sdr_dir: Path = Path("bin/svr")
    ffmpeg_path: str = "ffmpeg"


class RenderSettings(BaseModel):
    width: int = 1920
    height: int = 1080
    console_commands: str = "cl_drawhud 0; tf_use_min_viewmodels 0"
    output_basename: str = "movie"
    raw_extension: str = ".mov"
    log_level: str = "debug"


class TranscodeSettings(BaseModel):
    video_codec: str = "libx264"
    profile: str = "high"
    level: str = "4.1"
    pixel_format: str = "yuv420p"
    preset: str = "fast"
    crf: int = 18
    audio_codec: str = "aac"
    audio_bitrate: str = "192k"
    audio_sample_rate: int = 48000
    output_extension: str = ".mp4"
    concat_mode: Literal["copy", "reencode"] = "copy"
    max_parallel: int = Field(default=0, ge=0)


class TimeoutSettings(BaseModel):
    parser_seconds: float | None = 120.0
    render_seconds: float | None = None
    transcode_seconds: float | None = None
    concat_seconds: float | None = None


class ServerSettings(BaseModel):
    upload_dir: Path = Path("uploads")
    host: str = "127.0.0.1"
    port: int = 3001


class LoggingSettings(BaseModel):
    level: str = "INFO"
    loggers: dict[str, str] = Field(default_factory=dict)


class Settings(BaseModel):
    highlights: HighlightSettings = Field(default_factory=HighlightSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)
    render: RenderSettings = Field(default_factory=RenderSettings)
    transcode: TranscodeSettings = Field(default_factory=TranscodeSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def movies_dir(self) -> Path:
        """Directory the renderer writes raw segments into."""
        return Path(self.tools.sdr_dir) / "movies"


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load typed settings from YAML with environment-variable overrides."""

    resolved_path = Path(
        config_path
        or os.getenv(f"{ENV_PREFIX}CONFIG")
        or DEFAULT_CONFIG_PATH
    )
    raw_config = yaml.safe_load(resolved_path.read_text(encoding="utf-8")) or {}
    data = Settings.model_validate(raw_config).model_dump(mode="python")

    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        suffix = key[len(ENV_PREFIX) :]
        if suffix == "CONFIG":
            continue

        path = [part.lower() for part in suffix.split("__")]
        _apply_override(data, path, raw_value)

    return Settings.model_validate(data)


def _apply_override(data: dict[str, Any], path: list[str], raw_value: str) -> None:
    current: Any = data
    for segment in path[:-1]:
        if not isinstance(current, dict) or segment not in current:
            return
        current = current[segment]

    if not isinstance(current, dict):
        return

    final_key = path[-1]
    if final_key not in current:
        return

    current[final_key] = _coerce_value(raw_value, current[final_key])


def _coerce_value(raw_value: str, existing_value: Any) -> Any:
    if raw_value.strip().lower() in {"none", "null"}:
        return None
    if existing_value is None:
        return raw_value
    if isinstance(existing_value, bool):
        return raw_value.lower() in {"1", "true", "yes", "on"}
    if isinstance(existing_value, int) and not isinstance(existing_value, bool):
        return int(raw_value)
    if isinstance(existing_value, float):
        return float(raw_value)
    if isinstance(existing_value, list | dict):
        return json.loads(raw_value)
    if isinstance(existing_value, Path):
        return Path(raw_value)
    return raw_value
