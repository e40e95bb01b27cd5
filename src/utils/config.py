"""Configuration management for the certificate number extractor.

Loads and validates YAML configuration with sensible defaults for the
OCR engine, the region search and the numeric fields to extract.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class OCRConfig(BaseModel):
    """Configuration for the Tesseract OCR engine."""

    tesseract_cmd: str | None = None
    language: str = "eng"
    whitelist: str = "0123456789"
    psm: int = 6
    auto_rotate: bool = True


class SearchConfig(BaseModel):
    """Configuration for the iterative region search."""

    max_iterations: int = Field(default=5, ge=1)
    expand_step: int = Field(default=30, ge=0)


class RectConfig(BaseModel):
    """Initial search rectangle in page pixel coordinates."""

    left: int
    top: int
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class FieldConfig(BaseModel):
    """A numeric field: its format rule and where to start looking."""

    length: int = Field(gt=0)
    prefix: str = ""
    rect: RectConfig


def _default_fields() -> dict[str, FieldConfig]:
    return {
        "registration_number": FieldConfig(
            length=12,
            rect=RectConfig(left=1400, top=1195, width=1000, height=320),
        ),
        "voucher_number": FieldConfig(
            length=11,
            rect=RectConfig(left=250, top=400, width=700, height=150),
        ),
    }


class BatchConfig(BaseModel):
    """Configuration for concurrent batch processing."""

    max_workers: int = Field(default=2, ge=1)
    timeout_s: float | None = 120.0


class ServerConfig(BaseModel):
    """Configuration for the HTTP API server."""

    host: str = "0.0.0.0"
    port: int = 8000


class AppConfig(BaseModel):
    """Top-level application configuration."""

    ocr: OCRConfig = Field(default_factory=OCRConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    fields: dict[str, FieldConfig] = Field(default_factory=_default_fields)
    mandatory_field: str = "registration_number"
    batch: BatchConfig = Field(default_factory=BatchConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
