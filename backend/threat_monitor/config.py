"""应用配置管理，从环境变量加载配置"""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置类"""

    # Database
    database_url: str = "sqlite:///./data/threat_monitor.db"

    # Telegram MTProto (channel monitoring)
    telegram_api_id: int = 0
    telegram_api_hash: str = ""
    telegram_session_file: str = "data/session.txt"
    telegram_phone: str = ""
    monitored_channels: str = ""

    # Telegram Bot (delivery + chat menu)
    telegram_bot_token: str = ""
    telegram_bot_session: str = "data/bot"

    # LLM API
    llm_api_key: str = ""
    llm_api_base_url: str = ""
    llm_model: str = "gemini-2.5-flash"
    llm_timeout: float = 60.0

    # API Auth
    api_key: str = ""

    # App Config
    debug: bool = False
    log_level: str = "INFO"
    monitor_enabled: bool = True

    # Channel context
    context_messages: int = 10
    history_limit: int = 20

    # Deduplication
    dedup_window_seconds: int = 60
    dedup_max_entries: int = 1000

    # Geocoding
    geocoding_cache_path: str = "data/ukraine_geojson_cache.json"
    geocoding_cache_max_age_days: int = 7
    geojson_base_url: str = "https://raw.githubusercontent.com/EugeneBorshch/ukraine_geojson/master/"
    geocoding_request_timeout: float = 10.0

    # Dispatch
    default_proximity_radius_km: float = 20.0
    strategic_line_required: bool = True

    # Chat menu
    chat_state_ttl_seconds: int = 600

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @property
    def channel_list(self) -> List[str]:
        return [ch.strip().lstrip("@") for ch in self.monitored_channels.split(",") if ch.strip()]


def validate_settings(settings: Settings) -> List[str]:
    """Return the missing values required to start the monitor."""
    errors = []
    if not settings.telegram_api_id:
        errors.append("TELEGRAM_API_ID is required")
    if not settings.telegram_api_hash:
        errors.append("TELEGRAM_API_HASH is required")
    if not settings.telegram_bot_token:
        errors.append("TELEGRAM_BOT_TOKEN is required")
    if not settings.llm_api_key:
        errors.append("LLM_API_KEY is required")
    return errors


@lru_cache
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()
