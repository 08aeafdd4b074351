import os
from decimal import Decimal
from typing import List
from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings

# Load environment variables from the correct .env file
os.environ.setdefault("APP_ENV", "development")
env_file = ".env" if os.getenv("APP_ENV") == "development" else ".env.production"
load_dotenv(env_file)  # Load the .env file

class Settings(BaseSettings):
    APP_ENV: str = "development"
    DEBUG: bool = False
    DATABASE_URL: str
    ALEMBIC_DATABASE_URL: str = ""
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ALLOWED_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "info"

    # Billing settings
    CURRENCY: str = "NGN"
    RECEIPT_NUMBER_PREFIX: str = "RCP"
    RECEIPT_NUMBER_ATTEMPTS: int = 5
    CLAIM_NUMBER_PREFIX: str = "CLM"
    CLAIM_STRICT_TRANSITIONS: bool = True
    AUTO_CLAIM_ON_PAYMENT: bool = False
    DEFAULT_LOW_DEPOSIT_THRESHOLD: Decimal = Decimal("5000")

    # Accept comma-separated ALLOWED_ORIGINS strings
    @field_validator("ALLOWED_ORIGINS", mode="before")
    def split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

settings = Settings()
