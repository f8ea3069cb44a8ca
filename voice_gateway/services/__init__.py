"""
Services module for external REST integrations.

Key components:
- tts_client: Client for the upstream speech synthesis endpoint, returning raw
  PCM audio, plus the greeting helper used when a session opens.
"""
