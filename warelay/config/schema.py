"""
Configuration schema definitions.

Design principles:
    - Explicit structure
    - Predictable defaults
    - Environment override support
    - Strong typing + validation
"""

from __future__ import annotations

from typing import Final

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================
# Fixed relay constants
# =============================

COMMAND_PREFIX: Final[str] = "!"
VIDEO_COMPRESS_THRESHOLD: Final[int] = 16 * 1024 * 1024
DEDUP_WINDOW_S: Final[float] = 60.0
LOOKUP_TIMEOUT_S: Final[float] = 3.0


# =============================
# Bridge
# =============================

class BridgeConfig(BaseModel):
    """Node.js WhatsApp Web bridge connection."""
    url: str = "ws://127.0.0.1:3001"
    reconnect_interval: float = 5.0
    request_timeout: float = 30.0


# =============================
# Relay
# =============================

class RelayConfig(BaseModel):
    """Routing, correlation and rendering knobs."""
    operator_chat_id: str = ""
    country_code: str = "62"

    # Correlation entries older than this are evicted (seconds)
    correlation_ttl: float = 7 * 24 * 3600
    # A live location with no update for this long is treated as ended
    live_location_idle: float = 15 * 60

    # Longer original captions are sent as a separate message
    max_inline_caption: int = 700


# =============================
# Media
# =============================

class MediaConfig(BaseModel):
    """ffmpeg based transcoding."""
    ffmpeg_path: str = "ffmpeg"
    image_max_width: int = 1280
    image_quality: int = 5          # ffmpeg -q:v, 2 (best) .. 31 (worst)
    video_crf: int = 28
    video_preset: str = "veryfast"
    timeout: float = 180.0


# =============================
# Root Config
# =============================

class Config(BaseSettings):
    """
    Root configuration schema.

    Priority:
        env > config.json > defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="WARELAY_",
        env_nested_delimiter="__",
    )

    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # File values arrive as init kwargs; environment must still win.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    # -------------------------
    # Runtime helpers
    # -------------------------

    @property
    def operator_chat_id(self) -> str | None:
        """Operator channel id, None when forwarding is not configured."""
        return self.relay.operator_chat_id.strip() or None
