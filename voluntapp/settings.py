from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=None, extra="ignore", populate_by_name=True
    )

    environment: str = Field(
        default="development", validation_alias="VOLUNTAPP_ENV"
    )
    log_level: str = Field(default="INFO", validation_alias="VOLUNTAPP_LOG_LEVEL")

    # proximity sub-score decays to zero at this distance
    max_distance_miles: float = Field(
        default=100.0, validation_alias="VOLUNTAPP_MAX_DISTANCE_MILES"
    )
    default_volunteers_needed: int = Field(
        default=10, validation_alias="VOLUNTAPP_DEFAULT_VOLUNTEERS_NEEDED"
    )

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in ("prod", "production")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
