# backend/config.py
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    # --- API Info ---
    api_title: str = "AYPA E-commerce API"
    api_version: str = "1.0.0"

    # --- Server ---
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    # --- Database ---
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "aypa_ecommerce"
    seed_on_startup: bool = False

    # --- Auth tokens ---
    jwt_secret: str = "aypa_ecommerce_secret"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    reset_token_expire_minutes: int = 60
    # Only for local development, never enable in production
    expose_reset_tokens: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
            database_name=os.getenv("DATABASE_NAME", "aypa_ecommerce"),
            seed_on_startup=_flag("SEED_ON_STARTUP"),
            jwt_secret=os.getenv("JWT_SECRET") or "aypa_ecommerce_secret",
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24))),
            reset_token_expire_minutes=int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", "60")),
            expose_reset_tokens=_flag("EXPOSE_RESET_TOKENS"),
        )
