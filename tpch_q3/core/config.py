from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./tpch.db"
    SQL_ECHO: bool = False
    LOG_LEVEL: str = "INFO"

    # Query parameters used when a request does not provide them
    DEFAULT_SEGMENT: str = "BUILDING"
    DEFAULT_DATE: str = "1995-03-15"

    # Execution tuning
    JOIN_PARTITIONS: int = 4
    FETCH_BATCH_SIZE: int = 10_000
    INGEST_CHUNK_SIZE: int = 5_000

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Create a single instance of the settings to use everywhere
settings = Settings()
