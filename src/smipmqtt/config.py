"""
Configuration for the MQTT topic discovery service.

Uses Pydantic settings so every value can be overridden from the
environment (prefix ``SMIP_MQTT_``) or a local ``.env`` file.
"""

import sys
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from ulid import ULID


def default_data_root() -> Path:
    """Platform default for the shared data root."""
    if sys.platform == "win32":
        return Path(r"C:\ProgramData\ThinkIQ\DataRoot")
    return Path("/opt/thinkiq/DataRoot")


class Settings(BaseSettings):
    """Runtime configuration for the discovery service."""

    model_config = SettingsConfigDict(
        env_prefix="SMIP_MQTT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage layout
    data_root: Path = Field(
        default_factory=default_data_root,
        description="Root directory shared with the connector",
    )
    history_dir: str = Field(
        default="MqttHist", description="Cached value directory under data_root"
    )
    history_extension: str = Field(default=".txt", description="Cached value file extension")
    topic_list_file: str = Field(
        default="MqttTopicList.txt", description="Learned topic catalog file"
    )
    subscription_file: str = Field(
        default="CloudAcquiredTagList.txt",
        description="Externally maintained list of topics to cache",
    )

    # Topic structure
    hierarchy_separator: str = Field(
        default="/", description="Literal topic segment separator (empty: no hierarchy)"
    )
    virtual_separator: str = Field(
        default="/:/",
        description="Marker between a topic and its payload-derived suffix (empty: disabled)",
    )

    # Identity and liveness
    client_id: str = Field(default_factory=lambda: str(ULID()))
    heartbeat_topic: str = Field(default="thinkiq/mqtt/heartbeat")
    heartbeat_interval_seconds: float = Field(default=30.0, gt=0)
    identity_file: Path | None = Field(
        default=None, description="JSON device identity file (relative to data_root)"
    )
    identity_topic: str = Field(default="thinkiq/mqtt/identity")

    # Logging
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR")
    log_format: Literal["console", "json"] = "console"

    @field_validator("hierarchy_separator", "virtual_separator")
    @classmethod
    def _single_line_separator(cls, value: str) -> str:
        if "\n" in value or "\r" in value:
            raise ValueError("separators may not contain line breaks")
        return value

    @field_validator("history_extension")
    @classmethod
    def _dotted_extension(cls, value: str) -> str:
        if not value.startswith("."):
            raise ValueError("history_extension must start with '.'")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def history_root(self) -> Path:
        return self.data_root / self.history_dir

    @property
    def catalog_path(self) -> Path:
        return self.data_root / self.topic_list_file

    @property
    def subscription_path(self) -> Path:
        return self.data_root / self.subscription_file

    @property
    def identity_path(self) -> Path | None:
        if self.identity_file is None:
            return None
        if self.identity_file.is_absolute():
            return self.identity_file
        return self.data_root / self.identity_file
