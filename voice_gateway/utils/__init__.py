"""Small helpers shared by the gateway and the reference client."""

from voice_gateway.utils.logging_utils import LogThrottle, sanitize_strings_deep

__all__ = ["LogThrottle", "sanitize_strings_deep"]
