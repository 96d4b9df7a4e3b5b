"""
HTTP API for the Teensy Serial Bridge

Thin request layer over the transport manager: one endpoint to read the
latest telemetry, one to queue a command, and two that launch timed
solenoid sequences in the background. The application lifespan starts
and stops the transport manager together with the server.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import AliasChoices, BaseModel, Field

from ..communication.transport_manager import TransportManager
from ..config.settings import SequenceConfig
from ..control.sequencer import CommandSequencer


class CommandRequest(BaseModel):
    """Payload for queuing a command, e.g. ``{"command": "s51"}``."""
    command: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("command", "Command")
    )


def create_app(manager: TransportManager,
               sequence_config: SequenceConfig = None,
               manage_lifecycle: bool = True) -> FastAPI:
    """
    Build the API application.

    Args:
        manager: Transport manager shared by all requests
        sequence_config: Timing for the solenoid sequences
        manage_lifecycle: Start the manager on startup and stop it on shutdown

    Returns:
        FastAPI: Configured application
    """
    logger = logging.getLogger(__name__)
    sequencer = CommandSequencer(manager, sequence_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            await asyncio.to_thread(manager.start)
        try:
            yield
        finally:
            await sequencer.cancel_all()
            if manage_lifecycle:
                await asyncio.to_thread(manager.stop)

    app = FastAPI(title="Teensy Serial Bridge", lifespan=lifespan)
    app.state.manager = manager
    app.state.sequencer = sequencer

    @app.get("/telemetry")
    async def get_telemetry():
        return {"telemetry": manager.latest_telemetry}

    @app.get("/telemetry/stats")
    async def get_stats():
        return manager.get_stats()

    @app.post("/telemetry/command")
    async def send_command(request: CommandRequest):
        if request.command is None or not request.command.strip():
            raise HTTPException(status_code=400, detail="Command is required.")
        try:
            request.command.encode("utf-8")
        except UnicodeEncodeError:
            raise HTTPException(status_code=400, detail="Command must be valid UTF-8 text.")

        manager.send_command(request.command)
        logger.info(f"Queued command {request.command!r}")
        return {"status": "Command sent", "command": request.command}

    @app.get("/telemetry/precise")
    async def run_precise_sequence():
        sequencer.start_precise()
        return "Precise command sequence started"

    @app.get("/telemetry/sequencer")
    async def run_sequencer():
        sequencer.start_sweep()
        return "Sequencer command started"

    return app
