"""
Runtime configuration for qrfolio.

Values are read once (from keyword arguments or ``QRFOLIO_*`` environment
variables) and are immutable afterwards.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

ECC_LEVELS = ("L", "M", "Q", "H")


class Settings(BaseModel):
    """Generator, viewer and export settings."""

    model_config = ConfigDict(frozen=True)

    # ------------------------------------------------------------------
    # Link folio wire contract
    # ------------------------------------------------------------------

    base_url: str = Field(
        "http://localhost:8080/",
        description="Page address that folio tokens are appended to",
    )

    folio_param: str = Field(
        "folio",
        description="Query parameter carrying the folio token",
    )

    # ------------------------------------------------------------------
    # Rendering and validation
    # ------------------------------------------------------------------

    ecc: str = Field("H", description="QR error correction level")

    raster_size: int = Field(160, description="Preview raster width/height in px")

    export_size: int = Field(1024, description="Exported raster width/height in px")

    debounce_ms: int = Field(
        100,
        description="Delay coalescing bursts of edits before a validation check",
    )

    max_logo_bytes: int = Field(2 * 1024 * 1024, description="Upper bound on uploaded logo size")

    # ------------------------------------------------------------------
    # Export and logging
    # ------------------------------------------------------------------

    export_name: str = Field("qrfolio-export.zip", description="Archive file name")

    download_dir: Path = Field(Path("downloads"), description="Where downloads are written")

    log_level: str = Field("INFO", description="qrfolio log level")

    log_file: str | None = Field(None, description="Optional JSON log file")

    @field_validator("ecc")
    @classmethod
    def validate_ecc(cls, v: str) -> str:
        v = v.upper()
        if v not in ECC_LEVELS:
            raise ValueError(f"Unsupported ecc '{v}'. Allowed values: {list(ECC_LEVELS)}")
        return v

    @field_validator("debounce_ms")
    @classmethod
    def validate_debounce(cls, v: int) -> int:
        if v < 0:
            raise ValueError("debounce_ms must be >= 0")
        return v

    @field_validator("raster_size", "export_size")
    @classmethod
    def validate_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("raster sizes must be positive")
        return v

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from ``QRFOLIO_*`` environment variables."""
        fields = {
            "base_url": "QRFOLIO_BASE_URL",
            "folio_param": "QRFOLIO_FOLIO_PARAM",
            "ecc": "QRFOLIO_ECC",
            "raster_size": "QRFOLIO_RASTER_SIZE",
            "export_size": "QRFOLIO_EXPORT_SIZE",
            "debounce_ms": "QRFOLIO_DEBOUNCE_MS",
            "max_logo_bytes": "QRFOLIO_MAX_LOGO_BYTES",
            "export_name": "QRFOLIO_EXPORT_NAME",
            "download_dir": "QRFOLIO_DOWNLOAD_DIR",
            "log_level": "QRFOLIO_LOG_LEVEL",
            "log_file": "QRFOLIO_LOG_FILE",
        }
        values = {name: os.environ[env] for name, env in fields.items() if os.environ.get(env)}
        return cls(**values)


DEFAULT_SETTINGS = Settings()
