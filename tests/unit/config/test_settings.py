# tests/unit/config/test_settings.py
"""Tests for config/settings.py: typed Settings and validation rules."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from epubzip.config.settings import ConfigurationError, Settings, load_settings


class TestSettingsDefaults:
    def test_pipeline_defaults(self):
        s = Settings(_env_file=None)
        assert s.max_concurrent_jobs == 3
        assert s.compression_level == 6
        assert s.aggregate_archive_name == "epub_converted_files.zip"

    def test_yield_defaults(self):
        s = Settings(_env_file=None)
        assert s.yield_every_images == 10
        assert s.batch_yield_ms == 50
        assert s.batch_yield_seconds == 0.05

    def test_warning_thresholds_in_bytes(self):
        s = Settings(_env_file=None)
        assert s.large_image_warning_bytes == 50 * 1024 * 1024
        assert s.large_file_warning_bytes == 500 * 1024 * 1024

    def test_logging_defaults(self):
        s = Settings(_env_file=None)
        assert s.log_level == "INFO"
        assert s.log_format == "text"
        assert s.log_file is None


class TestSettingsValidation:
    def test_zero_jobs(self):
        with pytest.raises(ConfigurationError, match="MAX_CONCURRENT_JOBS"):
            Settings(_env_file=None, max_concurrent_jobs=0)

    def test_negative_batch_yield(self):
        with pytest.raises(ConfigurationError, match="BATCH_YIELD_MS"):
            Settings(_env_file=None, batch_yield_ms=-1)

    def test_archive_name_must_be_zip(self):
        with pytest.raises(ConfigurationError, match="AGGREGATE_ARCHIVE_NAME"):
            Settings(_env_file=None, aggregate_archive_name="bundle.tar")

    def test_errors_are_combined(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(_env_file=None, yield_every_images=0, large_file_warning_mb=0)
        assert "YIELD_EVERY_IMAGES" in str(exc_info.value)
        assert "size warning" in str(exc_info.value)

    @pytest.mark.parametrize("level", [-1, 10])
    def test_compression_level_range(self, level):
        with pytest.raises(ValidationError, match="compression_level"):
            Settings(_env_file=None, compression_level=level)


class TestEnvironment:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("EPUBZIP_MAX_CONCURRENT_JOBS", "8")
        monkeypatch.setenv("EPUBZIP_LOG_FORMAT", "json")
        s = Settings(_env_file=None)
        assert s.max_concurrent_jobs == 8
        assert s.log_format == "json"

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("EPUBZIP_COMPRESSION_LEVEL=9\n")
        assert Settings(_env_file=env_file).compression_level == 9


class TestLoadSettings:
    def test_overrides(self):
        s = load_settings(_env_file=None, max_concurrent_jobs=1)
        assert s.max_concurrent_jobs == 1
