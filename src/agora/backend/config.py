"""Configuration management module"""
import os
from pathlib import Path
from typing import Literal
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
    PydanticBaseSettingsSource,
    TomlConfigSettingsSource,
)


def get_instance_path() -> Path:
    """Get the current instance path from environment or default"""
    instance_path = os.environ.get("AGORA_INSTANCE_PATH")
    if instance_path:
        return Path(instance_path).expanduser()
    return Path.home() / ".agora"


def get_config_file() -> Path | None:
    """Get config file path if it exists"""
    config_file = get_instance_path() / "config.toml"
    if config_file.exists():
        return config_file
    return None


class Settings(BaseSettings):
    """System configuration settings"""

    # Application basic configuration
    app_name: str = "Agora"
    app_version: str = "0.1.0"
    debug: bool = False

    # Database configuration
    database_url: str = "sqlite+aiosqlite:///./data/agora.db"

    # Token configuration (empty secret means "not configured")
    access_token_secret: str = ""
    refresh_token_secret: str = ""
    reset_token_secret: str = ""
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    reset_token_expire_minutes: int = 30

    # Verification code configuration
    otp_expire_minutes: int = 10
    otp_length: int = 6

    # Password hashing cost
    bcrypt_rounds: int = 12

    # Frontend origin (OAuth redirect target and links in mails)
    frontend_origin: str = "http://localhost:3000"

    # Google OAuth configuration
    google_client_id: str = ""
    google_client_secret: str = ""
    google_auth_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    google_token_url: str = "https://oauth2.googleapis.com/token"
    google_userinfo_url: str = "https://www.googleapis.com/oauth2/v3/userinfo"
    oauth_timeout_seconds: float = 10.0

    # Email service configuration
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_use_ssl: bool = False
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = "noreply@agora.dev"
    smtp_from_name: str = "Agora"

    # Real-time broadcast: "global" sends every message to every socket,
    # "conversation" only to sockets joined to the conversation room
    broadcast_scope: Literal["global", "conversation"] = "global"

    # CORS configuration
    cors_origins: list[str] = ["http://localhost:3000"]

    # Server configuration
    server_host: str = "0.0.0.0"
    server_port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include the instance TOML file"""
        config_file = get_config_file()
        if config_file:
            toml_settings = TomlConfigSettingsSource(
                settings_cls, toml_file=config_file
            )
            return (
                init_settings,
                env_settings,
                dotenv_settings,
                toml_settings,
                file_secret_settings,
            )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


# Global settings instance
settings = Settings()
