"""
Environment-backed settings for the gateway.

Settings are read from the process environment (populated from a .env file by
the application entry points) into a GatewaySettings model. Loading never
fails on missing credentials; callers that need them call require_credentials().
"""

import os
from pathlib import Path
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field

from voice_gateway.config.constants import DEFAULT_MODEL_NAME, DEFAULT_REALTIME_URL


class MissingCredentialsError(RuntimeError):
    """Raised when a required credential is not configured."""

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"Missing required environment variables: {', '.join(missing)}")


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class GatewaySettings(BaseModel):
    """Runtime configuration for the gateway and its upstream services."""

    api_key: str = Field("", description="API key for the realtime and TTS services")
    folder_id: str = Field("", description="Cloud folder id used in the model URI")
    model_name: str = DEFAULT_MODEL_NAME
    realtime_url: str = DEFAULT_REALTIME_URL
    host: str = "0.0.0.0"
    port: int = 8000
    cert_path: Path = Path("cert.pem")
    key_path: Path = Path("key.pem")
    greeting_enabled: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GatewaySettings":
        env = os.environ if environ is None else environ
        return cls(
            api_key=env.get("YANDEX_API_KEY", ""),
            folder_id=env.get("YANDEX_FOLDER_ID", ""),
            model_name=env.get("YANDEX_MODEL_NAME") or DEFAULT_MODEL_NAME,
            realtime_url=env.get("YANDEX_WEBSOCKET_URL") or DEFAULT_REALTIME_URL,
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", "8000")),
            cert_path=Path(env.get("SSL_CERT_PATH", "cert.pem")),
            key_path=Path(env.get("SSL_KEY_PATH", "key.pem")),
            greeting_enabled=_as_bool(env.get("GREETING_ENABLED"), True),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )

    def missing_credentials(self) -> List[str]:
        missing = []
        if not self.api_key:
            missing.append("YANDEX_API_KEY")
        if not self.folder_id:
            missing.append("YANDEX_FOLDER_ID")
        return missing

    def require_credentials(self) -> None:
        missing = self.missing_credentials()
        if missing:
            raise MissingCredentialsError(missing)

    @property
    def use_tls(self) -> bool:
        """Serve TLS only when both the certificate and key files exist."""
        return self.cert_path.is_file() and self.key_path.is_file()

    @property
    def model_uri(self) -> str:
        return f"gpt://{self.folder_id}/{self.model_name}"
