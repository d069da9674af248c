from typing import List, Optional
from pydantic import PostgresDsn, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Future State Studio API"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/v1"
    LOG_LEVEL: str = "INFO"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "future_state"
    POSTGRES_PORT: int = 5432
    # Full URL override, e.g. sqlite+aiosqlite:///./local.db
    DATABASE_URL: Optional[str] = None

    # Auth
    SECRET_KEY: str = "change-me-in-production" # openssl rand -hex 32
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 8 # 8 days

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        ))

    # LLM provider for the design agent: ollama | openai | anthropic
    LLM_PROVIDER_PRIMARY: str = "ollama"

    # Ollama
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL_PRIMARY: str = "gpt-oss:20b"

    # OpenAI
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL_PRIMARY: str = "gpt-4o"

    # Anthropic
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL_PRIMARY: str = "claude-sonnet-4-5"

    # Step design
    STEP_DESIGN_AGENT_CACHE_ENABLED: bool = True
    VERSION_ALLOCATION_RETRIES: int = 3

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")

settings = Settings()
