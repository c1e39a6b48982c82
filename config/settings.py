import os
from pathlib import Path
from typing import List
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from the backend .env explicitly (works regardless of cwd)
load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")

class Settings(BaseSettings):
    """Application settings"""

    # Database (local SQLite if not provided)
    DATABASE_URL: str = os.getenv("DATABASE_URL") or "sqlite:///./payme_gateway.db"

    # Payme merchant
    PAYME_MERCHANT_ID: str = os.getenv("PAYME_MERCHANT_ID", "")
    PAYME_MERCHANT_KEY: str = os.getenv("PAYME_MERCHANT_KEY", "")
    PAYME_CHECKOUT_URL: str = os.getenv("PAYME_CHECKOUT_URL", "https://checkout.paycom.uz")  # test: https://checkout.test.paycom.uz
    PAYME_API_URL: str = os.getenv("PAYME_API_URL", "https://checkout.paycom.uz/api")  # test: https://checkout.test.paycom.uz/api
    PAYME_TRANSACTION_TIMEOUT_MINUTES: int = int(os.getenv("PAYME_TRANSACTION_TIMEOUT_MINUTES", "12"))
    PAYME_API_TIMEOUT: float = float(os.getenv("PAYME_API_TIMEOUT", "15"))

    # JWT
    JWT_SECRET: str = os.getenv("JWT_SECRET", "your-secret-key-here")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION: int = 3600  # 1 hour

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Card receipt reconciliation
    RECON_ENABLED: bool = os.getenv("RECON_ENABLED", "false").lower() in ("1", "true", "yes", "on")
    RECON_INTERVAL_SECONDS: int = int(os.getenv("RECON_INTERVAL_SECONDS", "300"))

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }

# Create global settings instance
settings = Settings()
