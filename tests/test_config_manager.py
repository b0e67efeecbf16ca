"""
test_config_manager.py
설정 로드/저장 테스트
"""

import json

import pytest

from hardware.relay_controller import ConfigError
from irrigation.config_manager import DEFAULT_SETTINGS, ConfigManager


def write_json(path, data):
    path.write_text(json.dumps(data), encoding='utf-8')
    return path


def test_defaults_without_file():
    config = ConfigManager()
    assert config.settings == DEFAULT_SETTINGS
    assert config.settle_delay == 3
    assert config.get_setting("hardware.i2c_bus") == 1


def test_missing_file_uses_defaults(tmp_path):
    config = ConfigManager(tmp_path / "nope.json")
    assert config.get_setting("hardware.board") == 1


def test_file_is_merged_over_defaults(tmp_path):
    path = write_json(tmp_path / "settings.json", {"system": {"settle_delay": 0.5}})
    config = ConfigManager(path)
    assert config.settle_delay == 0.5
    assert config.get_setting("system.scale") == 100
    assert config.get_setting("system.log_level") == "INFO"


def test_get_setting_default():
    config = ConfigManager()
    assert config.get_setting("system.unknown", 42) == 42
    assert config.get_setting("system.scale.deeper") is None


def test_invalid_json(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding='utf-8')
    with pytest.raises(ConfigError):
        ConfigManager(path)


@pytest.mark.parametrize("data", [
    [],
    {"system": {"settle_delay": -1}},
    {"system": {"settle_delay": "3s"}},
    {"hardware": {"board": "one"}},
    {"system": {"scale": True}},
])
def test_invalid_settings(tmp_path, data):
    path = write_json(tmp_path / "settings.json", data)
    with pytest.raises(ConfigError):
        ConfigManager(path)


def test_save_settings(tmp_path):
    source = write_json(tmp_path / "in.json", {"hardware": {"board": 3}})
    target = ConfigManager(source).save_settings(tmp_path / "sub" / "out.json")

    saved = json.loads(target.read_text(encoding='utf-8'))
    assert saved["hardware"]["board"] == 3
    assert ConfigManager(target).settings == saved


def test_save_without_path():
    with pytest.raises(ConfigError):
        ConfigManager().save_settings()
