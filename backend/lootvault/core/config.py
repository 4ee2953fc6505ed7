from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "LootVault API"
    DEBUG: bool = True

    # PostgreSQL
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "lootvault"
    POSTGRES_PASSWORD: str = "lootvault_secret"
    POSTGRES_DB: str = "lootvault"

    # Overrides the PostgreSQL parts when set (e.g. sqlite+aiosqlite:///./lootvault.db)
    DATABASE_URL: str = ""

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # Identities
    OWNER_ADDRESS: str = ""  # Only this caller may run catalog/admin operations
    ENGINE_ADDRESS: str = "lootvault"  # Holder of reward stock and collected payments

    # Events
    EVENTS_PUBLISH_ENABLED: bool = True
    EVENTS_CHANNEL: str = "lootvault:events"

    # Randomness
    RANDOMNESS_PROVIDER: str = "local"  # local | oracle | manual
    RANDOMNESS_SERVER_SEED: str = ""  # Hex; random per process when empty
    RANDOMNESS_LOCAL_DELAY_SEC: float = 0.5
    RANDOMNESS_ORACLE_URL: str = ""
    RANDOMNESS_ORACLE_API_KEY: str = ""
    RANDOMNESS_ORACLE_SECRET: str = ""  # Shared secret for callback signatures
    RANDOMNESS_CALLBACK_URL: str = ""  # Public URL of /api/v1/randomness/callback
    RANDOMNESS_ORACLE_RATE_LIMIT: int = 5  # Requests per second

    # Pending request housekeeping
    PENDING_REQUEST_TIMEOUT_SEC: int = 3600
    REAPER_INTERVAL_SEC: int = 60

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
