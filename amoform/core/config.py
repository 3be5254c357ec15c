from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "amoform"
    app_env: str = "development"
    app_debug: bool = False
    app_log_level: str = "INFO"

    # amoCRM
    amocrm_subdomain: str = ""
    amocrm_login: str = ""
    amocrm_api_key: str = ""
    amocrm_base_url: str | None = None  # Overrides https://{subdomain}.amocrm.ru
    amocrm_timeout: float = 30.0
    amocrm_default_enum: str = "WORK"
    amocrm_strict_reconciliation: bool = False

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def amocrm_url(self) -> str:
        """Root URL of the amoCRM account API."""
        if self.amocrm_base_url:
            return self.amocrm_base_url.rstrip("/")
        return f"https://{self.amocrm_subdomain}.amocrm.ru"

    @model_validator(mode="after")
    def validate_production_credentials(self) -> Settings:
        if self.is_production:
            if not self.amocrm_subdomain and not self.amocrm_base_url:
                raise ValueError("amocrm_subdomain must be set in production")
            if not self.amocrm_login or not self.amocrm_api_key:
                raise ValueError("amocrm_login and amocrm_api_key must be set in production")
        return self


settings = Settings()
