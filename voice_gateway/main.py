"""
FastAPI server for the realtime voice assistant gateway.

This module initializes the FastAPI application that browsers connect to. The
/ws endpoint carries the browser's JSON dialect; each connection gets its own
session and upstream realtime channel. Static assets and TLS termination are
handled outside this module (see run.py for TLS).
"""

from datetime import datetime, timezone
from pathlib import Path

import dotenv
from fastapi import FastAPI, WebSocket

from voice_gateway.config.logging_config import configure_logging
from voice_gateway.config.settings import GatewaySettings
from voice_gateway.websocket_manager import WebSocketManager

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)

settings = GatewaySettings.from_env()
logger = configure_logging(settings.log_level)

app = FastAPI(
    title="Voice Gateway",
    description="Bridge between a browser voice client and a realtime speech service",
    version="1.0.0",
)

websocket_manager = WebSocketManager(settings)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for browser voice sessions.

    Inbound frames are JSON commands (audio, text_message, commit_audio,
    interrupt); outbound frames are client events (agent and tool lifecycle,
    handoff, audio, history, errors).
    """
    await websocket_manager.handle_websocket(websocket)


@app.get("/health")
async def health_check():
    """Health check endpoint reporting process liveness.

    Returns:
        dict: Status, credential presence and the number of active sessions.
    """
    return {
        "status": "healthy",
        "api_key_configured": not websocket_manager.settings.missing_credentials(),
        "active_sessions": len(websocket_manager.session_manager),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API."""
    return {
        "name": "Voice Gateway",
        "description": "Bridge between a browser voice client and a realtime speech service",
        "version": "1.0.0",
        "endpoints": {
            "/ws": "WebSocket endpoint for browser voice sessions",
            "/health": "Health check endpoint",
        },
    }
