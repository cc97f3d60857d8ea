from pathlib import Path
from functools import lru_cache

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "./data/glasschat.db"

    # Server
    backend_port: int = 8000
    log_level: str = "INFO"

    # Provider/model assumed for messages that carry none (user messages)
    default_provider: str = "openai"
    default_model: str = "gpt-4o"
    pricing_tier: str = "standard"

    # Token estimation constants
    message_overhead_tokens: int = 10
    image_tokens: int = 85

    # Loaded from YAML
    yaml_config: dict = {}

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        yaml_path = Path(__file__).parent.parent / "config" / "settings.yaml"
        if yaml_path.exists() and not self.yaml_config:
            with open(yaml_path, "r", encoding="utf-8") as f:
                self.yaml_config = yaml.safe_load(f) or {}

    @property
    def pricing_config(self) -> dict:
        return self.yaml_config.get("pricing", {})

    @property
    def optimization_config(self) -> dict:
        return self.yaml_config.get("optimization", {})


@lru_cache
def get_settings() -> Settings:
    return Settings()
