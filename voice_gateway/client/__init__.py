"""
Reference client for the gateway's WebSocket dialect.

Provides the serial audio player, the event router that turns gateway events
into playback and a conversation log, and a websockets-based client with a
small command line front end (``python -m voice_gateway.client``).
"""
