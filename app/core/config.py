import os
from typing import List, Union, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from app.core.errors import ConfigurationError

load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Payment Gateway Backend")
    API_PREFIX: str = os.getenv("API_PREFIX", "/api")
    NODE_ENV: str = os.getenv("NODE_ENV", "development")

    # Provider selection: "razorpay" or "pinelabs" (case-insensitive)
    PAYMENT_PROVIDER: Optional[str] = os.getenv("PAYMENT_PROVIDER")
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "INR")

    RAZORPAY_KEY_ID: str = os.getenv("RAZORPAY_KEY_ID", "")
    RAZORPAY_KEY_SECRET: str = os.getenv("RAZORPAY_KEY_SECRET", "")
    RAZORPAY_WEBHOOK_SECRET: Optional[str] = os.getenv("RAZORPAY_WEBHOOK_SECRET")

    PINELABS_MERCHANT_ID: str = os.getenv("PINELABS_MERCHANT_ID", "")
    PINELABS_ACCESS_CODE: str = os.getenv("PINELABS_ACCESS_CODE", "")
    PINELABS_SECRET_KEY: str = os.getenv("PINELABS_SECRET_KEY", "")
    PINELABS_API_URL: str = os.getenv("PINELABS_API_URL", "https://api.pluralonline.com")

    # "memory" keeps subscriptions in process, "supabase" uses the subscriptions table
    SUBSCRIPTION_STORE: str = os.getenv("SUBSCRIPTION_STORE", "memory")
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    SUPABASE_SUBSCRIPTIONS_TABLE: str = os.getenv("SUPABASE_SUBSCRIPTIONS_TABLE", "subscriptions")

    # CORS, comma separated
    ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "")

    ENFORCE_HTTPS: bool = False

    @field_validator("PAYMENT_PROVIDER", mode="before")
    @classmethod
    def normalize_provider(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v

    @field_validator("SUBSCRIPTION_STORE", mode="before")
    @classmethod
    def normalize_store(cls, v: Union[str, None]) -> str:
        if not v:
            return "memory"
        return str(v).strip().lower()

    @property
    def is_development(self) -> bool:
        return self.NODE_ENV.lower() == "development"

    @property
    def is_production(self) -> bool:
        return self.NODE_ENV.lower() == "production"

    @property
    def razorpay_webhook_secret(self) -> str:
        """
        Secret used for Razorpay webhook bodies.
        Falls back to the account key secret when no dedicated webhook secret is set.
        """
        return self.RAZORPAY_WEBHOOK_SECRET or self.RAZORPAY_KEY_SECRET

    def cors_origins(self) -> List[str]:
        origins = [i.strip() for i in self.ALLOWED_ORIGINS.split(",") if i.strip()]
        if origins:
            return origins
        if self.is_development:
            return ["*"]
        raise ConfigurationError("ALLOWED_ORIGINS environment variable must be set outside development")

    class Config:
        case_sensitive = True

settings = Settings()
