import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

# Load environment variables from .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))

# Checkout timing rules
ORDER_RESUME_WINDOW_MINUTES = 15
SESSION_MAX_AGE_MINUTES = 30
SESSION_EXPIRES_AFTER_MINUTES = 60
PENDING_ORDER_RATE_WINDOW_MINUTES = 10
PENDING_ORDER_RATE_LIMIT = 5

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8080",
]


class Config(BaseModel):
    """Validated server configuration, built once at process start."""

    model_config = ConfigDict(frozen=True)

    env: str = Field("p", pattern="^[dp]$")
    auth_jwt_key: str = Field(..., min_length=1)
    auth_jwt_audience: Optional[str] = "authenticated"
    stripe_secret_key: str = Field(..., min_length=1)
    stripe_webhook_secret: str = Field(..., min_length=1)
    site_url: str = Field(..., min_length=1)
    firestore_database: str = "(default)"
    revalidate_url: Optional[str] = None
    revalidate_secret: Optional[str] = None
    resend_api_key: Optional[str] = None
    email_from: str = "Keystore <orders@keystore.example>"
    cron_secret: Optional[str] = None
    cors_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @property
    def is_development(self) -> bool:
        return self.env == "d"

    @property
    def success_url(self) -> str:
        return f"{self.site_url.rstrip('/')}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}"

    @property
    def cancel_url(self) -> str:
        return f"{self.site_url.rstrip('/')}/checkout/cancel"


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"{name} environment variable is not set")
    return value


def load_config() -> Config:
    """
    Build the server configuration from the environment.

    Raises:
        ValueError: If a required variable is missing or a value is invalid
    """
    env = os.getenv("KEYSTORE_ENV", "p").lower()
    if env not in ["d", "p"]:
        raise ValueError("KEYSTORE_ENV must be either 'd' (development) or 'p' (production)")

    # NOTE: revalidation, email and cron settings are optional; the features
    # they drive are skipped when absent
    cors_origins = os.getenv("KEYSTORE_CORS_ORIGINS")

    return Config(
        env=env,
        auth_jwt_key=_require("KEYSTORE_AUTH_JWT_KEY"),
        auth_jwt_audience=os.getenv("KEYSTORE_AUTH_JWT_AUDIENCE", "authenticated") or None,
        stripe_secret_key=_require("KEYSTORE_STRIPE_SECRET_KEY"),
        stripe_webhook_secret=_require("KEYSTORE_STRIPE_WEBHOOK_SECRET"),
        site_url=_require("KEYSTORE_SITE_URL"),
        firestore_database=os.getenv("KEYSTORE_FIRESTORE_DATABASE", "(default)"),
        revalidate_url=os.getenv("KEYSTORE_REVALIDATE_URL") or None,
        revalidate_secret=os.getenv("KEYSTORE_REVALIDATE_SECRET") or None,
        resend_api_key=os.getenv("KEYSTORE_RESEND_API_KEY") or None,
        email_from=os.getenv("KEYSTORE_EMAIL_FROM", "Keystore <orders@keystore.example>"),
        cron_secret=os.getenv("KEYSTORE_CRON_SECRET") or None,
        cors_origins=(
            [origin.strip() for origin in cors_origins.split(",") if origin.strip()]
            if cors_origins
            else list(DEFAULT_CORS_ORIGINS)
        ),
    )
