from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    TMDB_API_KEY: str
    TMDB_BASE_URL: str = 'https://api.themoviedb.org/3'
    TMDB_LANGUAGE: str = 'en-US'
    TMDB_TIMEOUT_SECONDS: float = 10.0

    APP_NAME: str = 'Watchify API'
    ENVIRONMENT: str = 'development'
    LOG_LEVEL: str = 'INFO'
    # comma separated, "*" allows any origin
    CORS_ALLOW_ORIGINS: str = '*'

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ALLOW_ORIGINS.split(',') if o.strip()]


settings = Settings()
