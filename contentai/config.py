from typing import List
from pydantic import PostgresDsn, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "ContentAI Editor"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/v1"
    LOG_LEVEL: str = "INFO"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "contentai"
    POSTGRES_PORT: int = 5432
    SQL_ECHO: bool = False

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> PostgresDsn:
        return PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    # LLM provider for the editor assistant: openrouter | openai | ollama | anthropic
    LLM_PROVIDER_EDITOR: str = "openrouter"

    OPENROUTER_API_KEY: str = ""
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    OPENROUTER_MODEL_EDITOR: str = "anthropic/claude-3.5-sonnet"
    OPENROUTER_APP_TITLE: str = "ContentAI"

    OPENAI_API_KEY: str = ""
    OPENAI_MODEL_EDITOR: str = "gpt-4o-mini"

    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL_EDITOR: str = "llama3.1:8b"

    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL_EDITOR: str = "claude-3-5-sonnet-latest"

    EDITOR_TEMPERATURE: float = 0.7
    EDITOR_MAX_TOKENS: int = 32000
    GENERATION_TIMEOUT_SECONDS: float = 120.0

    # Draft editor
    AUTOSAVE_INTERVAL_SECONDS: float = 120.0
    FIELD_AUTOSAVE_DEBOUNCE_SECONDS: float = 1.5
    SNAPSHOT_HISTORY_LIMIT: int = 50
    SUGGESTION_CONTEXT_CHARS: int = 12000
    MIN_SELECTION_LENGTH: int = 4

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")

settings = Settings()
