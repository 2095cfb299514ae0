"""
backend/config.py

Application configuration via Pydantic Settings.
All values can be overridden with environment variables or a .env file.

Quick start — create a .env file in your project root:
    INTERFACE=eth0
    EXTRA_LOCAL_IPS=10.10.10.2
    API_PORT=8080
"""

from __future__ import annotations

import json
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Capture
    INTERFACE: str = ""           # empty → auto-detect
    BPF_FILTER: str = ""          # empty → build_bpf_filter(EXCLUDE_PORTS)
    EXCLUDE_PORTS: Annotated[list[int], NoDecode] = [53]

    # Addresses owned by this host that interface enumeration cannot see,
    # e.g. a WireGuard tunnel address
    EXTRA_LOCAL_IPS: Annotated[list[str], NoDecode] = []

    # Queues
    CAPTURE_QUEUE_SIZE: int = 10_000

    # API
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8080

    # Logging
    LOG_LEVEL: str = "INFO"
    STATS_INTERVAL_SECONDS: float = 30.0

    @field_validator("EXTRA_LOCAL_IPS", "EXCLUDE_PORTS", mode="before")
    @classmethod
    def parse_list(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("["):
                try:
                    return json.loads(v)
                except ValueError:
                    pass
            return [item.strip() for item in v.split(",") if item.strip()]
        return v


settings = Settings()
