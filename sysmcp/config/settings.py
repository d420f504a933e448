from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    eventlog_anonymization_enabled: bool = True
    filesearch_anonymization_enabled: bool = True

    anonymization_mapping_path: Path = Path("data/anonymization-mapping.json")
    anonymization_mapping_file_mode: int = 0o600
    anonymization_create_dirs: bool = True

    # Overrides the detected host name used as the local identity.
    local_hostname: str = ""
