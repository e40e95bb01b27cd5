"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from src.utils.config import (
    AppConfig,
    BatchConfig,
    FieldConfig,
    OCRConfig,
    RectConfig,
    SearchConfig,
    load_config,
)


class TestOCRConfig:
    """Tests for OCRConfig defaults and overrides."""

    def test_defaults(self) -> None:
        cfg = OCRConfig()
        assert cfg.language == "eng"
        assert cfg.whitelist == "0123456789"
        assert cfg.psm == 6
        assert cfg.auto_rotate is True
        assert cfg.tesseract_cmd is None

    def test_custom_lang(self) -> None:
        cfg = OCRConfig(language="rus", whitelist="")
        assert cfg.language == "rus"
        assert cfg.whitelist == ""


class TestSearchConfig:
    """Tests for SearchConfig defaults and bounds."""

    def test_defaults(self) -> None:
        cfg = SearchConfig()
        assert cfg.max_iterations == 5
        assert cfg.expand_step == 30

    def test_rejects_zero_iterations(self) -> None:
        with pytest.raises(ValidationError):
            SearchConfig(max_iterations=0)


class TestFieldConfig:
    """Tests for field rule configuration."""

    def test_rect_requires_positive_size(self) -> None:
        with pytest.raises(ValidationError):
            RectConfig(left=0, top=0, width=0, height=10)

    def test_prefix_defaults_empty(self) -> None:
        cfg = FieldConfig(length=12, rect=RectConfig(left=1, top=2, width=3, height=4))
        assert cfg.prefix == ""


class TestAppConfig:
    """Tests for the top-level AppConfig."""

    def test_defaults(self) -> None:
        cfg = AppConfig()
        assert isinstance(cfg.ocr, OCRConfig)
        assert isinstance(cfg.search, SearchConfig)
        assert isinstance(cfg.batch, BatchConfig)
        assert cfg.mandatory_field == "registration_number"
        assert cfg.fields["registration_number"].length == 12
        assert cfg.fields["voucher_number"].rect.left == 250
        assert cfg.server.port == 8000
        assert cfg.log_level == "INFO"

    def test_nested_override(self) -> None:
        cfg = AppConfig(search=SearchConfig(expand_step=15), log_level="DEBUG")
        assert cfg.search.expand_step == 15
        assert cfg.log_level == "DEBUG"


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_load_project_config(self, config_dir: Path) -> None:
        cfg = load_config(config_dir / "config.yaml")
        assert isinstance(cfg, AppConfig)
        assert cfg.ocr.whitelist == "0123456789"
        assert cfg.fields["registration_number"].rect.top == 1195

    def test_load_missing_file_returns_defaults(self) -> None:
        cfg = load_config(Path("/nonexistent/path/config.yaml"))
        assert isinstance(cfg, AppConfig)
        assert cfg.ocr.language == "eng"

    def test_load_custom_yaml(self, tmp_path: Path) -> None:
        config_data = {
            "ocr": {"language": "eng+rus", "psm": 7},
            "search": {"max_iterations": 3},
            "fields": {
                "registration_number": {
                    "length": 12,
                    "prefix": "002",
                    "rect": {"left": 750, "top": 650, "width": 400, "height": 80},
                }
            },
            "log_level": "DEBUG",
        }
        config_file = tmp_path / "config.yaml"
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

        cfg = load_config(config_file)
        assert cfg.ocr.language == "eng+rus"
        assert cfg.ocr.psm == 7
        assert cfg.search.max_iterations == 3
        assert list(cfg.fields) == ["registration_number"]
        assert cfg.fields["registration_number"].prefix == "002"
        assert cfg.log_level == "DEBUG"

    def test_load_empty_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        cfg = load_config(config_file)
        assert isinstance(cfg, AppConfig)

    def test_load_none_defaults_to_standard_path(self) -> None:
        cfg = load_config()
        assert isinstance(cfg, AppConfig)
