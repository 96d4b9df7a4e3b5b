"""
Configuration Management System

Handles bridge settings, configuration loading, validation,
and environment variable overrides.
"""

import os
import yaml
import json
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict, fields


@dataclass
class SerialConfig:
    """Serial link configuration."""
    port: Optional[str] = None  # None = auto-detect
    baudrate: int = 115200
    read_timeout: float = 0.5  # seconds
    write_timeout: float = 1.0  # seconds
    exclusive: bool = True


@dataclass
class TransportConfig:
    """Background worker configuration."""
    idle_sleep: float = 0.01  # seconds
    join_timeout: float = 2.0  # seconds


@dataclass
class SequenceConfig:
    """Timed solenoid sequence configuration."""
    solenoid_count: int = 16
    precise_step_delay: float = 0.05  # seconds
    precise_hold: float = 4.0  # seconds
    sweep_cycles: int = 5
    sweep_step_delay: float = 0.02  # seconds


@dataclass
class ApiConfig:
    """HTTP API configuration."""
    host: str = "0.0.0.0"
    port: int = 5000


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_file: str = "teensy_bridge.log"
    max_file_size_mb: float = 10.0
    backup_count: int = 5
    console_output: bool = True
    detailed_format: bool = False


class Settings:
    """
    Configuration for the serial bridge.

    Loads YAML or JSON files into typed sections, applies environment
    overrides and validates the result.
    """

    SECTIONS = ('serial', 'transport', 'sequence', 'api', 'logging')

    def __init__(self, config_file: str = "config/teensy_bridge.yaml"):
        """
        Initialize settings manager.

        Args:
            config_file: Path to configuration file
        """
        self.config_file = config_file
        self.logger = logging.getLogger(__name__)

        self.serial = SerialConfig()
        self.transport = TransportConfig()
        self.sequence = SequenceConfig()
        self.api = ApiConfig()
        self.logging = LoggingConfig()

    def load_config(self, config_file: str = None) -> bool:
        """
        Load configuration from file.

        A missing file is not an error: the defaults stay in place.

        Args:
            config_file: Configuration file path (optional)

        Returns:
            bool: True if loaded successfully
        """
        if config_file:
            self.config_file = config_file

        try:
            if not os.path.exists(self.config_file):
                self.logger.warning(f"Config file {self.config_file} not found, using defaults")
                return self._validate_config()

            if self.config_file.endswith('.yaml') or self.config_file.endswith('.yml'):
                with open(self.config_file, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            elif self.config_file.endswith('.json'):
                with open(self.config_file, 'r') as f:
                    config_data = json.load(f)
            else:
                self.logger.error(f"Unsupported config file format: {self.config_file}")
                return False

            self._load_section_config(config_data)

            if not self._validate_config():
                return False

            self.logger.info(f"Configuration loaded from {self.config_file}")
            return True

        except (OSError, ValueError, yaml.YAMLError) as e:
            self.logger.error(f"Failed to load configuration: {e}")
            return False

    def save_config(self, config_file: str = None) -> bool:
        """
        Save current configuration to file.

        Args:
            config_file: Configuration file path (optional)

        Returns:
            bool: True if saved successfully
        """
        if config_file:
            self.config_file = config_file

        try:
            config_dir = os.path.dirname(self.config_file)
            if config_dir:
                os.makedirs(config_dir, exist_ok=True)

            config_data = self.to_dict()

            if self.config_file.endswith('.yaml') or self.config_file.endswith('.yml'):
                with open(self.config_file, 'w') as f:
                    yaml.dump(config_data, f, default_flow_style=False, indent=2)
            elif self.config_file.endswith('.json'):
                with open(self.config_file, 'w') as f:
                    json.dump(config_data, f, indent=2)
            else:
                self.logger.error(f"Unsupported config file format: {self.config_file}")
                return False

            self.logger.info(f"Configuration saved to {self.config_file}")
            return True

        except OSError as e:
            self.logger.error(f"Failed to save configuration: {e}")
            return False

    def update_from_dict(self, config_dict: Dict[str, Any]):
        """Update configuration from dictionary."""
        self._load_section_config(config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {name: asdict(getattr(self, name)) for name in self.SECTIONS}

    def load_environment_overrides(self):
        """Load configuration overrides from environment variables."""
        if 'TEENSY_SERIAL_PORT' in os.environ:
            self.serial.port = os.environ['TEENSY_SERIAL_PORT']
        if 'TEENSY_SERIAL_BAUDRATE' in os.environ:
            self.serial.baudrate = int(os.environ['TEENSY_SERIAL_BAUDRATE'])

        if 'TEENSY_API_HOST' in os.environ:
            self.api.host = os.environ['TEENSY_API_HOST']
        if 'TEENSY_API_PORT' in os.environ:
            self.api.port = int(os.environ['TEENSY_API_PORT'])

        if 'TEENSY_LOG_LEVEL' in os.environ:
            self.logging.level = os.environ['TEENSY_LOG_LEVEL'].upper()
        if 'TEENSY_LOG_FILE' in os.environ:
            self.logging.log_file = os.environ['TEENSY_LOG_FILE']

        self.logger.info("Environment variable overrides applied")

    def _load_section_config(self, config_data: Dict[str, Any]):
        """Load configuration data into sections."""
        for name in self.SECTIONS:
            section_data = config_data.get(name)
            if not section_data:
                continue

            section = getattr(self, name)
            known = {f.name for f in fields(section)}
            for key, value in section_data.items():
                if key in known:
                    setattr(section, key, value)
                else:
                    self.logger.warning(f"Ignoring unknown setting {name}.{key}")

    def _validate_config(self) -> bool:
        """Validate configuration values."""
        try:
            if self.serial.baudrate <= 0:
                raise ValueError("Serial baudrate must be positive")
            if self.serial.read_timeout <= 0:
                raise ValueError("Serial read timeout must be positive")

            if self.transport.idle_sleep < 0:
                raise ValueError("Idle sleep cannot be negative")
            if self.transport.join_timeout < self.serial.read_timeout:
                raise ValueError("Join timeout must cover at least one read timeout")

            if self.sequence.solenoid_count <= 0:
                raise ValueError("Solenoid count must be positive")

            if not 0 < self.api.port < 65536:
                raise ValueError("API port must be between 1 and 65535")

            return True

        except ValueError as e:
            self.logger.error(f"Configuration validation failed: {e}")
            return False
