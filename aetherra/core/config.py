from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
import os
from typing import List, Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # --- General App Settings ---
    PROJECT_NAME: str = "Aetherra Carbon Platform"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = Field("development", description="Environment: development | production")

    # --- Server Settings ---
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = True

    # --- Database ---
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "aetherra_db"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    SQLALCHEMY_DATABASE_URI: Optional[str] = None

    @property
    def DATABASE_URL(self) -> str:
        if self.SQLALCHEMY_DATABASE_URI:
            return self.SQLALCHEMY_DATABASE_URI
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # --- Redis (shared cache and rate limits across instances) ---
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_MAX_CONNECTIONS: int = int(os.getenv("REDIS_MAX_CONNECTIONS", "10"))

    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/0"

    # --- JWT Auth ---
    JWT_SECRET_KEY: str = Field(..., description="Secret key for JWT tokens")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 1 day

    # --- AI Engine Configuration ---
    AI_ENGINE: str = os.getenv("AI_ENGINE", "openai")  # Options: openai, deepseek
    AI_TIMEOUT_SECONDS: float = 30.0

    OPENAI_API_URL: str = "https://api.openai.com/v1/chat/completions"
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API Key")
    OPENAI_MODEL: str = "gpt-3.5-turbo"

    DEEPSEEK_API_URL: str = "https://api.deepseek.com/v1/chat/completions"
    DEEPSEEK_API_KEY: str = Field(default="", description="DeepSeek API Key")
    DEEPSEEK_MODEL: str = "deepseek-chat"

    # --- Dashboard cache ---
    CACHE_BACKEND: str = Field("memory", description="memory | redis")
    DASHBOARD_CACHE_TTL_SECONDS: int = 60

    # --- Rate limiting (fixed window per caller) ---
    RATE_LIMIT_BACKEND: str = Field("memory", description="memory | redis")
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_WRITE_MAX: int = 20
    RATE_LIMIT_READ_MAX: int = 60
    RATE_LIMIT_AI_MAX: int = 10

    # --- Reports & aggregation ---
    REPORT_TTL_DAYS: int = 90
    REPORT_RECENT_CALCULATIONS: int = 50
    AGGREGATION_RECORD_LIMIT: int = 1000

    # --- CORS (open in development) ---
    CORS_ORIGINS: List[str] = ["*"]

    # --- Logging ---
    LOG_DIR: str = os.getenv("LOG_DIR", "logs")
    LOG_TO_FILE: bool = True
    API_LOG_LEVEL: str = os.getenv("API_LOG_LEVEL", "INFO")
    AUTH_LOG_LEVEL: str = os.getenv("AUTH_LOG_LEVEL", "INFO")
    DB_LOG_LEVEL: str = os.getenv("DB_LOG_LEVEL", "INFO")
    AI_LOG_LEVEL: str = os.getenv("AI_LOG_LEVEL", "INFO")


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()
