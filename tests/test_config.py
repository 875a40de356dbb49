import logging

import pytest

from contentwatch.config import Settings, load_settings


@pytest.fixture
def layout(tmp_path, monkeypatch):
    for name in ("CW_PORT", "CW_BROKER", "CW_MODE", "CW_FLAG"):
        monkeypatch.delenv(name, raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("CW_PORT=9000\nCW_BROKER=localhost:6379\nCW_MODE=debug\n")
    config_dir = tmp_path / "configs"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text(
        "CW_MODE: release\nservices:\n  upload: http://localhost:5002\ncw_flag: true\n"
    )
    return env_file, config_dir


def test_env_file_values_are_case_insensitive(layout):
    env_file, _ = layout
    settings = load_settings(env_file, None)
    assert settings.get("CW_PORT") == "9000"
    assert settings.get("cw_port") == "9000"
    assert settings.get("CW_BROKER") == "localhost:6379"


def test_yaml_overrides_env_file(layout):
    env_file, config_dir = layout
    settings = load_settings(env_file, config_dir)
    assert settings.get("CW_MODE") == "release"
    assert settings.get("CW_PORT") == "9000"


def test_yaml_is_ignored_without_config_dir(layout):
    env_file, _ = layout
    settings = load_settings(env_file, None)
    assert settings.get("CW_MODE") == "debug"
    assert settings.get("services.upload") == ""


def test_nested_yaml_keys_are_dotted(layout):
    env_file, config_dir = layout
    settings = load_settings(env_file, config_dir)
    assert settings.get("services.upload") == "http://localhost:5002"


def test_yaml_booleans_read_as_strings(layout):
    env_file, config_dir = layout
    settings = load_settings(env_file, config_dir)
    assert settings.get("CW_FLAG") == "true"


def test_environment_overrides_files(layout, monkeypatch):
    env_file, config_dir = layout
    monkeypatch.setenv("CW_PORT", "7000")
    settings = load_settings(env_file, config_dir)
    assert settings.get("cw_port") == "7000"


def test_missing_files_fall_back_to_default(tmp_path, monkeypatch):
    monkeypatch.delenv("CW_PORT", raising=False)
    settings = load_settings(tmp_path / ".env", tmp_path / "configs")
    assert settings.get("CW_PORT", "8000") == "8000"
    assert settings.values == {}


def test_empty_environment_value_is_ignored():
    settings = Settings({"port": "5002"}, {"PORT": ""})
    assert settings.get("PORT") == "5002"


def test_environment_mapping_wins():
    settings = Settings({"port": "5002"}, {"PORT": "6000"})
    assert settings.get("port") == "6000"


def test_require_warns_when_unset(caplog):
    settings = Settings({}, {})
    with caplog.at_level(logging.WARNING):
        value = settings.require("UPLOAD_DIR")
    assert value == ""
    assert "UPLOAD_DIR not set" in caplog.text


def test_require_returns_value_when_set():
    settings = Settings({"upload_dir": "uploads"}, {})
    assert settings.require("UPLOAD_DIR") == "uploads"