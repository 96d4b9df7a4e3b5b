"""
Teensy Serial Bridge - Main Application

Loads configuration, sets up logging, opens the serial link through the
transport manager and serves the HTTP API until interrupted.
"""

import logging
import sys

import click
import uvicorn

from teensy_bridge import Settings, SerialLink, TransportManager
from teensy_bridge.api import create_app
from teensy_bridge.utils.logging_config import setup_logging_from_config


def build_manager(settings: Settings) -> TransportManager:
    """Create a transport manager from the serial and transport settings."""
    link = SerialLink(
        port=settings.serial.port,
        baudrate=settings.serial.baudrate,
        read_timeout=settings.serial.read_timeout,
        write_timeout=settings.serial.write_timeout,
        exclusive=settings.serial.exclusive
    )
    return TransportManager(
        link,
        idle_sleep=settings.transport.idle_sleep,
        join_timeout=settings.transport.join_timeout
    )


@click.command()
@click.argument("port", required=False)
@click.option("--config", "config_file", default="config/teensy_bridge.yaml",
              show_default=True, help="YAML or JSON configuration file.")
@click.option("--baudrate", type=int, default=None, help="Override the serial baud rate.")
@click.option("--host", default=None, help="Override the HTTP bind address.")
@click.option("--http-port", type=int, default=None, help="Override the HTTP port.")
def main(port, config_file, baudrate, host, http_port):
    """Bridge a Teensy on PORT (e.g. /dev/ttyACM0 or COM15) to an HTTP API."""
    settings = Settings(config_file)
    if not settings.load_config():
        click.echo(f"Failed to load configuration from {config_file}", err=True)
        sys.exit(1)
    settings.load_environment_overrides()

    if port:
        settings.serial.port = port
    if baudrate:
        settings.serial.baudrate = baudrate
    if host:
        settings.api.host = host
    if http_port:
        settings.api.port = http_port

    if not setup_logging_from_config(settings.logging):
        sys.exit(1)
    logger = logging.getLogger(__name__)

    port_label = settings.serial.port or "auto-detected port"
    logger.info(f"Using serial port {port_label} at {settings.serial.baudrate} baud")

    manager = build_manager(settings)
    app = create_app(manager, settings.sequence)

    # The lifespan hook raises LinkConnectionError if the port cannot be opened,
    # which makes uvicorn abort startup
    uvicorn.run(app, host=settings.api.host, port=settings.api.port, log_config=None)


if __name__ == "__main__":
    main()
