"""Application settings and configuration."""
import os
from pathlib import Path

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

# Config file path: CONFIG_FILE env or default backend/config.yaml (config file is master over env)
CONFIG_FILE = os.environ.get("CONFIG_FILE") or str(
    Path(__file__).resolve().parent.parent / "config.yaml"
)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        yaml_file=CONFIG_FILE,
    )

    # App
    app_name: str = "PushHub API"
    app_version: str = "0.1.0"
    debug: bool = False
    api_v1_prefix: str = "/v1"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Security
    secret_key: str = "change-me-in-production-use-env-var"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 15

    # CORS (regex matched against the Origin header)
    cors_origin_regex: str = r"https?://(localhost|127\.0\.0\.1)(:\d+)?"

    # Push delivery
    push_gateway_timeout_seconds: float = 5.0  # per-gateway fan-out timeout
    push_http_timeout_seconds: float = 10.0  # httpx client timeout
    push_device_token_ttl_days: int = 30  # refreshed on every registry write
    push_credential_buffer_seconds: int = 300  # never serve a credential closer than this to expiry

    # Xiaomi Push (Android)
    xiaomi_app_secret: str = ""
    xiaomi_package_name: str = ""
    xiaomi_base_url: str = "https://api.xmpush.xiaomi.com"

    # Huawei Push Kit (Android)
    huawei_app_id: str = ""
    huawei_app_secret: str = ""
    huawei_base_url: str = "https://push-api.cloud.huawei.com"
    huawei_oauth_url: str = "https://oauth-login.cloud.huawei.com/oauth2/v3/token"

    # OPPO Push (Android)
    oppo_app_key: str = ""
    oppo_master_secret: str = ""
    oppo_base_url: str = "https://api.push.oppomobile.com"

    # Vivo Push (Android)
    vivo_app_id: str = ""
    vivo_app_key: str = ""
    vivo_app_secret: str = ""
    vivo_base_url: str = "https://api-push.vivo.com.cn"

    # APNs (iOS). Key is the .p8 signing key, inline (apns_private_key) or as a file path (apns_key_path)
    apns_key_path: str = ""
    apns_private_key: str = ""
    apns_key_id: str = ""
    apns_team_id: str = ""
    apns_bundle_id: str = ""
    apns_production: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Precedence: init kwargs > config file > env > .env > defaults."""
        return (
            init_settings,
            YamlConfigSettingsSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @property
    def apns_signing_key(self) -> str:
        """Inline APNs key, else the contents of apns_key_path ('' when neither is set)."""
        if self.apns_private_key:
            return self.apns_private_key.replace("\\n", "\n")
        if self.apns_key_path:
            return Path(self.apns_key_path).expanduser().read_text()
        return ""

    @property
    def apns_base_url(self) -> str:
        if self.apns_production:
            return "https://api.push.apple.com"
        return "https://api.sandbox.push.apple.com"


settings = Settings()


def get_settings() -> Settings:
    """Return the process settings."""
    return settings
