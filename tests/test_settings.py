import json
import logging

import pytest
import yaml

from teensy_bridge.config.settings import Settings
from teensy_bridge.utils.logging_config import setup_logging


def test_missing_file_keeps_defaults(tmp_path):
    settings = Settings(str(tmp_path / "absent.yaml"))

    assert settings.load_config() is True
    assert settings.serial.port is None
    assert settings.serial.baudrate == 115200
    assert settings.serial.read_timeout == 0.5
    assert settings.transport.idle_sleep == 0.01
    assert not (tmp_path / "absent.yaml").exists()


def test_yaml_sections_are_loaded(tmp_path):
    config_file = tmp_path / "bridge.yaml"
    config_file.write_text(yaml.safe_dump({
        "serial": {"port": "COM15", "baudrate": 57600},
        "sequence": {"solenoid_count": 8},
        "api": {"port": 8080},
        "unknown_section": {"x": 1},
    }))
    settings = Settings(str(config_file))

    assert settings.load_config() is True
    assert settings.serial.port == "COM15"
    assert settings.serial.baudrate == 57600
    assert settings.sequence.solenoid_count == 8
    assert settings.api.port == 8080


def test_json_config_and_save(tmp_path):
    settings = Settings()
    settings.serial.port = "/dev/ttyACM0"
    target = tmp_path / "out" / "bridge.json"

    assert settings.save_config(str(target)) is True

    data = json.loads(target.read_text())
    assert data["serial"]["port"] == "/dev/ttyACM0"
    assert set(data) == {"serial", "transport", "sequence", "api", "logging"}

    reloaded = Settings(str(target))
    assert reloaded.load_config() is True
    assert reloaded.serial.port == "/dev/ttyACM0"


@pytest.mark.parametrize("section, key, value", [
    ("serial", "baudrate", 0),
    ("serial", "read_timeout", 0),
    ("transport", "join_timeout", 0.1),
    ("sequence", "solenoid_count", 0),
    ("api", "port", 70000),
])
def test_invalid_values_fail_validation(tmp_path, section, key, value):
    config_file = tmp_path / "bridge.yaml"
    config_file.write_text(yaml.safe_dump({section: {key: value}}))

    assert Settings(str(config_file)).load_config() is False


def test_unsupported_format_is_rejected(tmp_path):
    config_file = tmp_path / "bridge.ini"
    config_file.write_text("[serial]\n")

    assert Settings(str(config_file)).load_config() is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TEENSY_SERIAL_PORT", "COM7")
    monkeypatch.setenv("TEENSY_SERIAL_BAUDRATE", "9600")
    monkeypatch.setenv("TEENSY_API_PORT", "9000")
    monkeypatch.setenv("TEENSY_LOG_LEVEL", "debug")

    settings = Settings()
    settings.load_environment_overrides()

    assert settings.serial.port == "COM7"
    assert settings.serial.baudrate == 9600
    assert settings.api.port == 9000
    assert settings.logging.level == "DEBUG"


def test_setup_logging_writes_rotating_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    log_file = tmp_path / "logs" / "bridge.log"
    try:
        assert setup_logging(level="DEBUG", log_file=str(log_file), console_output=False) is True
        logging.getLogger("teensy_bridge.test").debug("hello from the bridge")
        for handler in root.handlers:
            handler.flush()

        assert "hello from the bridge" in log_file.read_text()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
