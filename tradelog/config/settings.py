import sys
from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    """
    Application-wide settings.
    Read from the environment (or .env) and type-checked on load.
    """
    # Telegram
    TELEGRAM_BOT_TOKEN: str
    TELEGRAM_CHAT_ID: Optional[str] = None  # only keep messages from this chat
    TELEGRAM_FETCH_LIMIT: int = 100
    TELEGRAM_TIMEOUT_SECONDS: int = 10

    # Supabase (service role, bypasses RLS)
    SUPABASE_URL: str
    SUPABASE_SERVICE_ROLE_KEY: str
    TRADES_TABLE: str = "trades"

    # Sync behaviour
    SYNC_DEADLINE_SECONDS: float = 25.0
    SYNC_INTERVAL_SECONDS: int = 3600

    # HTTP
    CORS_ALLOW_ORIGINS: str = "*"  # comma separated

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

# Singleton Instance
try:
    settings = Settings()
except Exception as e:
    # logging depends on settings, so report on stderr directly
    print(f"CRITICAL: Failed to load configuration. Missing env vars? {e}", file=sys.stderr)
    settings = None
