"""
Test 7: Config System (config.py)

Tests FaultlineConfig, ConfigLoader source precedence and validation.
"""

import json
import os

import pytest

from faultline.config import ConfigError, ConfigLoader, FaultlineConfig, load_config
from faultline.core import Severity


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("FAULTLINE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def yaml_file(tmp_path):
    path = tmp_path / "faultline.yaml"
    path.write_text(
        "faultline:\n"
        "  reporting: ERROR|WARNING\n"
        "  error_page: html\n"
        "  debug: true\n"
    )
    return path


# ============================================================================
# FaultlineConfig
# ============================================================================

class TestFaultlineConfig:

    def test_defaults(self):
        config = FaultlineConfig()
        assert config.display_errors is True
        assert config.silence is None
        assert config.throw_faults is False
        assert config.reporting == "ALL"
        assert config.error_page is None
        assert config.reentrancy_guard is True


# ============================================================================
# Sources
# ============================================================================

class TestFileSources:

    def test_yaml_section(self, yaml_file):
        config = load_config(yaml_file)
        assert config.reporting == "ERROR|WARNING"
        assert config.error_page == "html"
        assert config.debug is True

    def test_flat_yaml(self, tmp_path):
        path = tmp_path / "flat.yml"
        path.write_text("throw_faults: true\n")
        assert load_config(path).throw_faults is True

    def test_json(self, tmp_path):
        path = tmp_path / "faultline.json"
        path.write_text(json.dumps({"faultline": {"display_errors": False}}))
        assert load_config(path).display_errors is False

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == FaultlineConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "faultline.toml"
        path.write_text("debug = true\n")
        with pytest.raises(ConfigError, match="Unsupported"):
            load_config(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_reporting_as_list(self, tmp_path):
        path = tmp_path / "list_mask.yaml"
        path.write_text("reporting: [ERROR, NOTICE]\n")
        config = load_config(path)
        assert config.reporting == str(int(Severity.ERROR | Severity.NOTICE))


class TestEnvSources:

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("FAULTLINE_THROW_FAULTS=yes\nOTHER_VALUE=1\n")
        config = load_config(env_file=env_file)
        assert config.throw_faults is True

    def test_missing_env_file_ignored(self, tmp_path):
        assert load_config(env_file=tmp_path / ".env") == FaultlineConfig()

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("FAULTLINE_SILENCE", "on")
        monkeypatch.setenv("FAULTLINE_REPORTING", "WARNING")
        config = load_config()
        assert config.silence is True
        assert config.reporting == "WARNING"

    def test_none_value(self, monkeypatch):
        monkeypatch.setenv("FAULTLINE_ERROR_PAGE", "none")
        assert load_config().error_page is None

    def test_unrelated_prefixed_variable_ignored(self, monkeypatch):
        monkeypatch.setenv("FAULTLINE_LOG_DIR", "/var/log")
        monkeypatch.setenv("FAULTLINE_DEBUG", "true")

        loader = ConfigLoader.load()

        assert loader.get("log_dir") is None
        assert loader.build().debug is True

    def test_unrelated_env_file_key_ignored(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("FAULTLINE_LOG_DIR=/var/log\n")
        assert load_config(env_file=env_file) == FaultlineConfig()

    @pytest.mark.parametrize("raw, expected", [("1", True), ("0", False)])
    def test_numeric_flags(self, monkeypatch, raw, expected):
        monkeypatch.setenv("FAULTLINE_THROW_FAULTS", raw)
        monkeypatch.setenv("FAULTLINE_SILENCE", raw)
        config = load_config()
        assert config.throw_faults is expected
        assert config.silence is expected

    def test_numeric_reporting_stays_mask(self, monkeypatch):
        monkeypatch.setenv("FAULTLINE_REPORTING", "1")
        assert load_config().reporting == "1"

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("APP_FAULTS_DEBUG", "true")
        loader = ConfigLoader.load(env_prefix="APP_FAULTS_")
        assert loader.get("debug") is True


class TestPrecedence:

    def test_env_file_over_yaml(self, yaml_file, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("FAULTLINE_ERROR_PAGE=json\n")
        assert load_config(yaml_file, env_file=env_file).error_page == "json"

    def test_environment_over_env_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("FAULTLINE_ERROR_PAGE=json\n")
        monkeypatch.setenv("FAULTLINE_ERROR_PAGE", "text")
        assert load_config(env_file=env_file).error_page == "text"

    def test_overrides_win(self, yaml_file, monkeypatch):
        monkeypatch.setenv("FAULTLINE_DEBUG", "true")
        config = load_config(yaml_file, overrides={"debug": False})
        assert config.debug is False
        assert config.error_page == "html"


# ============================================================================
# Validation
# ============================================================================

class TestValidation:

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="Unknown config field"):
            load_config(overrides={"verbosity": 3})

    def test_wrong_type(self):
        with pytest.raises(ConfigError, match="throw_faults"):
            load_config(overrides={"throw_faults": "sometimes"})

    def test_int_is_not_bool(self):
        with pytest.raises(ConfigError):
            load_config(overrides={"debug": 1})

    def test_optional_accepts_none(self):
        assert load_config(overrides={"silence": None}).silence is None

    def test_bad_reporting_mask(self):
        with pytest.raises(ConfigError, match="Invalid reporting mask"):
            load_config(overrides={"reporting": "LOUD"})

    def test_bad_reporting_bits(self):
        with pytest.raises(ConfigError, match="Invalid reporting mask"):
            load_config(overrides={"reporting": 1 << 20})

    def test_unknown_renderer(self):
        with pytest.raises(ConfigError, match="Unknown error page renderer"):
            load_config(overrides={"error_page": "pdf"})
