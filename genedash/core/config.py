"""
Core configuration settings
"""

from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""

    # API Configuration
    PROJECT_NAME: str = "Genetic Marker Analysis Dashboard"
    PROJECT_DESCRIPTION: str = "Upload genetic marker files, interpret them with a local or hosted LLM, and browse risk summaries"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    DEBUG: bool = False

    # CORS
    ALLOWED_HOSTS: List[str] = ["*"]

    # LLM provider selection: 'ollama' (local) or 'openai' (hosted)
    LLM_PROVIDER: str = "ollama"

    # Ollama Configuration
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3.1:8b"

    # Hosted model configuration
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_BASE_URL: str = ""

    # Generation parameters (low temperature for consistent medical analysis)
    LLM_TEMPERATURE: float = 0.1
    LLM_TOP_P: float = 0.9
    LLM_TOP_K: int = 40
    LLM_MAX_TOKENS: int = 1500
    LLM_TIMEOUT_SECONDS: float = 120.0
    HEALTH_CACHE_SECONDS: float = 30.0

    # Analysis pipeline
    ANALYSIS_BATCH_SIZE: int = 5
    ANALYSIS_CONCURRENCY: int = 3
    MARKER_TIMEOUT_SECONDS: float = 180.0
    REFERENCE_FALLBACK: bool = True

    # Uploads
    MAX_UPLOAD_SIZE_MB: int = 50

    # Progress stream
    PROGRESS_QUEUE_SIZE: int = 1000
    PROGRESS_KEEPALIVE_SECONDS: float = 15.0

    # Storage
    DATABASE_URL: str = "sqlite:///data/genedash.db"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    class Config:
        env_file = ".env"
        case_sensitive = True

# Global settings instance
settings = Settings()
