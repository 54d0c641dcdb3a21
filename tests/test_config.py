"""Tests for the environment-driven configuration."""

import importlib
import logging

import pytest

from logstash_metrics import config


@pytest.fixture
def reload_config(monkeypatch):
    """Reload the config module, restoring the real environment afterwards."""
    yield lambda: importlib.reload(config)
    monkeypatch.undo()
    importlib.reload(config)


class TestGetPositiveNumber:
    """Test cases for get_positive_number."""

    def test_unset_uses_default(self, monkeypatch):
        monkeypatch.delenv("REPORTER_TEST_VALUE", raising=False)

        assert config.get_positive_number("REPORTER_TEST_VALUE", 60.0, float) == 60.0

    def test_float_value(self, monkeypatch):
        monkeypatch.setenv("REPORTER_TEST_VALUE", "0.5")

        assert config.get_positive_number("REPORTER_TEST_VALUE", 60.0, float) == 0.5

    @pytest.mark.parametrize("raw", ["abc", "0.5", "0", "-3"])
    def test_invalid_int_falls_back(self, monkeypatch, caplog, raw):
        monkeypatch.setenv("REPORTER_TEST_VALUE", raw)

        with caplog.at_level(logging.WARNING, logger="logstash_metrics.config"):
            value = config.get_positive_number("REPORTER_TEST_VALUE", 1028, int)

        assert value == 1028
        assert "REPORTER_TEST_VALUE" in caplog.text

    @pytest.mark.parametrize("raw", ["nan", "inf", "-1.5"])
    def test_non_finite_float_falls_back(self, monkeypatch, raw):
        monkeypatch.setenv("REPORTER_TEST_VALUE", raw)

        assert config.get_positive_number("REPORTER_TEST_VALUE", 60.0, float) == 60.0


class TestModuleSettings:
    """Test cases for settings read at import time."""

    def test_fractional_flush_interval(self, monkeypatch, reload_config):
        monkeypatch.setenv("METRICS_FLUSH_INTERVAL", "0.5")

        assert reload_config().FLUSH_INTERVAL == 0.5

    def test_malformed_values_do_not_break_import(self, monkeypatch, reload_config):
        monkeypatch.setenv("METRICS_FLUSH_INTERVAL", "soon")
        monkeypatch.setenv("HISTOGRAM_RESERVOIR_SIZE", "big")
        monkeypatch.setenv("MAX_RETRIES", "-1")

        reloaded = reload_config()

        assert reloaded.FLUSH_INTERVAL == 60.0
        assert reloaded.HISTOGRAM_RESERVOIR_SIZE == 1028
        assert reloaded.MAX_RETRIES == 3

    def test_parse_percentiles(self):
        assert config.parse_percentiles("0.5, 0.99") == (0.5, 0.99)
        assert config.parse_percentiles(" ") is None
