"""Shared test fixtures for the certificate extraction test suite."""

import io
from pathlib import Path

import pytest
from PIL import Image


@pytest.fixture
def page_bytes() -> bytes:
    """Encode a blank white page as PNG."""
    image = Image.new("RGB", (1600, 1600), (255, 255, 255))
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def small_page_bytes() -> bytes:
    """Encode a blank landscape grayscale page as PNG."""
    image = Image.new("L", (300, 200), 255)
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
