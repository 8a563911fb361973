# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""Dashboard settings, read from FIELDOPS_* environment variables or .env."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FIELDOPS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "FIELDOPS"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    operator_id: str = "operator"

    # Persistence
    state_dir: str = "~/.fieldops"
    persist_enabled: bool = True

    # Shared game-state sync
    sync_enabled: bool = False
    sync_base_url: str = "http://localhost:9000/api/game"
    sync_token: str | None = None
    sync_timeout: float = 5.0

    # Background cadence (seconds)
    broadcast_poll_interval: float = Field(default=1.0, gt=0)
    telemetry_poll_interval: float = Field(default=1.0, gt=0)
    geofence_check_interval: float = Field(default=5.0, gt=0)
    overdue_check_interval: float = Field(default=30.0, gt=0)

    # Tracking
    trail_capacity: int = Field(default=100, ge=1)
    ack_timeout_ms: int = Field(default=300_000, gt=0)

    # Map viewport
    zoom_min: float = Field(default=0.5, gt=0)
    zoom_max: float = 5.0
    zoom_step: float = Field(default=1.3, gt=1)
    map_width: int = 340
    map_height: int = 280
    map_padding: int = 20
    default_lat: float = Field(default=40.71, ge=-90, le=90)
    default_lng: float = Field(default=-74.01, ge=-180, le=180)

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper()


settings = Settings()
