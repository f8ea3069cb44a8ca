"""
Voice Gateway - browser to realtime voice assistant bridge

This application sits between a browser voice client and an upstream realtime
speech service. The browser speaks a small JSON dialect (microphone frames,
text messages, commit and interrupt commands) and receives a compact stream of
events back (agent and tool lifecycle, audio, transcripts, errors). The gateway
translates between that dialect and the provider's realtime event protocol.

Architecture Overview:
- FastAPI server exposing a WebSocket endpoint for browser sessions
- One SessionController per connection owning the upstream realtime channel
- A pure event translator collapsing upstream events into client events
- Local tool execution with agent handoff and a spoken follow-up turn

Key Components:
- bot: Session controller, event translator, tool registry and upstream client
- client: Reference client with the serial audio player and event router
- config: Constants, settings, voice profiles and logging setup
- models: Client command/event schemas and session state
- services: External REST integrations (speech synthesis)
- utils: Log throttling and payload sanitizing helpers
- websocket_manager: Accepts connections and owns the session table

Getting Started:
1. Set up environment variables (or a .env file):
   - YANDEX_API_KEY: API key for the realtime and TTS services
   - YANDEX_FOLDER_ID: Cloud folder id
   - PORT / HOST: Listen address (default 0.0.0.0:8000)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   python run.py
   ```

3. Point a client at ws://your-server:8000/ws
"""
