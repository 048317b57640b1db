from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Safe defaults; override via environment or .env file
    APP_NAME: str = "Application Entitlement API"
    APP_ENV: str = "dev"
    DATABASE_URL: str = "postgresql+psycopg2://postgres:postgres@db:5432/postgres"
    LOG_LEVEL: str = "INFO"
    API_KEY: str = ""
    CORS_ALLOW_ORIGINS: str = "*"  # comma-separated
    CREATE_TABLES_ON_STARTUP: bool = True

    # optimistic-lock retries for status transitions
    TRANSITION_RETRY_LIMIT: int = 1
    # retries of a reveal after a transient DB error raised before commit
    TRANSIENT_RETRY_LIMIT: int = 1

    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')


settings = Settings()
