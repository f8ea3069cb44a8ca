"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for configuration values and making it easier to
maintain consistent naming throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "voice_gateway"

# Upstream realtime service defaults
DEFAULT_MODEL_NAME = "speech-realtime-250923"
DEFAULT_REALTIME_URL = "wss://rest-assistant.api.cloud.yandex.net/v1/realtime/openai"

# Upstream TTS service
TTS_URL = "https://tts.api.cloud.yandex.net/speech/v1/tts:synthesize"
TTS_SAMPLE_RATE = 16000
TTS_FORMAT_LPCM = "lpcm"

# Sample rate the reference browser client captures and plays raw PCM at
CLIENT_SAMPLE_RATE = 44100

# Agent labels
DEFAULT_AGENT = "FAQ Agent"
GENERAL_AGENT = "General Agent"

# Client command types (browser -> gateway)
COMMAND_AUDIO = "audio"
COMMAND_TEXT_MESSAGE = "text_message"
COMMAND_COMMIT_AUDIO = "commit_audio"
COMMAND_INTERRUPT = "interrupt"

# Upstream command types (gateway -> realtime service)
UPSTREAM_SESSION_UPDATE = "session.update"
UPSTREAM_AUDIO_APPEND = "input_audio_buffer.append"
UPSTREAM_AUDIO_COMMIT = "input_audio_buffer.commit"
UPSTREAM_ITEM_CREATE = "conversation.item.create"
UPSTREAM_RESPONSE_CREATE = "response.create"
UPSTREAM_RESPONSE_CANCEL = "response.cancel"

# Timings (seconds)
SPEAK_RESULT_DELAY = 0.1
GREETING_DELAY = 0.5

# Client facing copy
ERROR_INVALID_MESSAGE = "Неверный формат сообщения"
ERROR_UPSTREAM_NOT_CONNECTED = "Соединение с Yandex Cloud не установлено"
ERROR_UPSTREAM_CONNECTION = "Ошибка подключения к Yandex Cloud"
TOOL_ERROR_PREFIX = "Ошибка"
SPEAK_RESULT_PREFIX = "Озвучь результат"
SPEAK_RESULT_INSTRUCTIONS = "Озвучь результат выполнения инструмента коротко и естественно."
VOICED_REPLY_PLACEHOLDER = "Озвученный ответ"
