"""
Run script for starting the Voice Gateway server.

This script loads configuration from the environment (and .env), refuses to
start without credentials, and starts uvicorn with TLS when both certificate
and key files are present.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import sys
from pathlib import Path

import dotenv
import uvicorn

sys.path.append(str(Path(__file__).parent))

from voice_gateway.config.logging_config import configure_logging
from voice_gateway.config.settings import GatewaySettings


def parse_args(argv=None, settings=None):
    """Parse command line arguments."""
    settings = settings or GatewaySettings()
    parser = argparse.ArgumentParser(description="Start the Voice Gateway server")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port to run the server on (default: 8000 or PORT env var)",
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help="Host to bind the server to (default: 0.0.0.0 or HOST env var)",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO or LOG_LEVEL env var)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point; returns the process exit code."""
    env_path = Path(".") / ".env"
    if env_path.exists():
        dotenv.load_dotenv(env_path)

    settings = GatewaySettings.from_env()
    args = parse_args(argv, settings)
    logger = configure_logging(args.log_level)

    missing = settings.missing_credentials()
    if missing:
        logger.error(f"Missing required environment variables: {', '.join(missing)}")
        print(f"Error: {', '.join(missing)} must be set (environment or .env file)")
        return 1

    ssl_options = {}
    if settings.use_tls:
        ssl_options = {"ssl_certfile": str(settings.cert_path), "ssl_keyfile": str(settings.key_path)}
        logger.info(f"TLS enabled with certificate {settings.cert_path}")
    else:
        logger.info("TLS certificate or key not found, serving plain HTTP")

    scheme = "https" if ssl_options else "http"
    logger.info(f"Starting server on {scheme}://{args.host}:{args.port}")
    logger.info(f"Realtime model: {settings.model_uri}")

    uvicorn.run(
        "voice_gateway.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
        http="h11",
        access_log=False,
        ws_ping_interval=5,
        ws_ping_timeout=20,
        ws_max_size=16 * 1024 * 1024,
        **ssl_options,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
