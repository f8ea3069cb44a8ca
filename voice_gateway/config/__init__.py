"""
Configuration module for the voice gateway.

Key components:
- constants: Logger name, upstream defaults, message type names and client copy.
- settings: Environment-backed GatewaySettings.
- profiles: Catalog of synthesis voices a session can speak with.
- logging_config: Console and rotating file logging setup.

Usage examples:
```python
from voice_gateway.config.constants import LOGGER_NAME
from voice_gateway.config.logging_config import configure_logging
from voice_gateway.config.settings import GatewaySettings

logger = configure_logging()
settings = GatewaySettings.from_env()
settings.require_credentials()
```
"""
