"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """cgmview server and snapshot builder configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; a glucose dashboard feed has no auth layer.
    cgm_host: str = "127.0.0.1"
    cgm_port: int = 8011
    cgm_log_level: str = "info"
    cgm_allow_insecure_bind: bool = False

    # Storage (record store)
    db_path: str = "~/.cgmview/records.db"
    encryption_key: str = ""

    # Device status: full 1-day window when true, latest record only otherwise
    devicestatus_advanced: bool = False

    # Units the curve fitter assumes for treatment glucose without explicit units
    display_units: Literal["mg/dl", "mmol"] = "mg/dl"


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
