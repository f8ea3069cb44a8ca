import pytest

from voice_gateway.config.settings import GatewaySettings, MissingCredentialsError


def test_defaults():
    settings = GatewaySettings.from_env({})
    assert settings.model_name == "speech-realtime-250923"
    assert settings.realtime_url == "wss://rest-assistant.api.cloud.yandex.net/v1/realtime/openai"
    assert settings.host == "0.0.0.0"
    assert settings.port == 8000
    assert settings.greeting_enabled is True
    assert settings.log_level == "INFO"


def test_from_env():
    settings = GatewaySettings.from_env({
        "YANDEX_API_KEY": "key",
        "YANDEX_FOLDER_ID": "folder",
        "YANDEX_MODEL_NAME": "custom-model",
        "PORT": "9443",
        "GREETING_ENABLED": "false",
        "LOG_LEVEL": "debug",
    })
    assert settings.api_key == "key"
    assert settings.port == 9443
    assert settings.greeting_enabled is False
    assert settings.log_level == "DEBUG"
    assert settings.model_uri == "gpt://folder/custom-model"
    assert not hasattr(settings, "upstream_url")


def test_missing_credentials():
    settings = GatewaySettings.from_env({"YANDEX_API_KEY": "key"})
    assert settings.missing_credentials() == ["YANDEX_FOLDER_ID"]

    with pytest.raises(MissingCredentialsError) as exc_info:
        settings.require_credentials()
    assert exc_info.value.missing == ["YANDEX_FOLDER_ID"]


def test_credentials_present():
    settings = GatewaySettings.from_env({"YANDEX_API_KEY": "key", "YANDEX_FOLDER_ID": "folder"})
    assert settings.missing_credentials() == []
    settings.require_credentials()


def test_tls_requires_both_files(tmp_path):
    cert = tmp_path / "cert.pem"
    key = tmp_path / "key.pem"
    cert.write_text("cert")

    settings = GatewaySettings(cert_path=cert, key_path=key)
    assert settings.use_tls is False

    key.write_text("key")
    assert settings.use_tls is True
