# src/config/settings.py
from pydantic_settings import BaseSettings
from pathlib import Path

# Get project root (2 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

class Settings(BaseSettings):
    # OpenAI
    openai_api_key: str = ""
    openai_llm_model: str = "gpt-4o-mini"
    classifier_timeout_seconds: float = 30.0

    # PostgreSQL (Supabase)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_database: str = "postgres"
    postgres_username: str = "postgres"
    postgres_password: str = ""
    postgres_sslmode: str = "require"

    # Ingestion config
    max_items_per_sync: int = 50
    sync_window_minutes: int = 60

    # Clustering config
    cluster_min_items: int = 2
    cluster_sample_size: int = 10
    cluster_cache_hours: int = 24

    class Config:
        env_file = str(PROJECT_ROOT / ".env")
        case_sensitive = False
        extra = "ignore"
