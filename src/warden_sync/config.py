"""
Configuration model for the PathCompanion sync engine.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("warden-sync")

DEFAULT_TITLE_ID = "BCA4C"


class SyncConfig(BaseModel):
    """Settings for talking to the external vault and the local store."""

    # External vault
    title_id: str = Field(
        default=DEFAULT_TITLE_ID,
        description="Public title id of the external vault"
    )
    api_base_url: str | None = Field(
        default=None,
        description="Base URL of the vault API; derived from title_id when unset"
    )
    request_timeout: float = Field(
        default=5.0,
        gt=0.0,
        description="Maximum seconds per external call before it is treated as unavailable"
    )

    # Batch and slot bounds
    import_all_limit: int = Field(
        default=50,
        ge=1,
        description="Maximum number of player characters processed by import-all"
    )
    list_limit: int = Field(
        default=50,
        ge=1,
        description="Maximum number of records returned when listing external characters"
    )
    export_slot_limit: int = Field(
        default=99,
        ge=1,
        description="Highest slot number scanned when exporting (character1..characterN)"
    )

    # Credentials and storage
    encryption_key: str | None = Field(
        default=None,
        description="Server-held secret used to encrypt stored vault passwords"
    )
    data_dir: Path = Field(
        default=Path("warden_data"),
        description="Root directory of the local JSON store"
    )

    @field_validator("title_id")
    @classmethod
    def validate_title_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title_id must not be empty")
        return v

    @field_validator("encryption_key", mode="before")
    @classmethod
    def blank_key_is_none(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def base_url(self) -> str:
        """Resolved API base URL without a trailing slash."""
        if self.api_base_url:
            return self.api_base_url.rstrip("/")
        return f"https://{self.title_id}.playfabapi.com"


def load_config(**overrides) -> SyncConfig:
    """Build a SyncConfig from ``.env`` and the process environment.

    Explicit keyword overrides win over environment values.
    """
    if not load_dotenv():
        logger.warning("⚠️ .env file invalid or not found, using process environment only")

    values: dict = {}
    if data_dir := os.getenv("WARDEN_SYNC_DATA_DIR"):
        values["data_dir"] = Path(data_dir).resolve()
    if key := os.getenv("PATHCOMPANION_ENCRYPTION_KEY"):
        values["encryption_key"] = key
    if title_id := os.getenv("PATHCOMPANION_TITLE_ID"):
        values["title_id"] = title_id
    if timeout := os.getenv("WARDEN_SYNC_TIMEOUT"):
        try:
            values["request_timeout"] = float(timeout)
        except ValueError:
            logger.warning(f"⚠️ WARDEN_SYNC_TIMEOUT={timeout!r} is not a number, using the default timeout")

    values.update(overrides)
    config = SyncConfig(**values)
    logger.debug(f"📂 Data path: {config.data_dir}")
    return config
