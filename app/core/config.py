from pathlib import Path
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# -------------------------------------------------
# Explicitly load .env (CRITICAL)
# -------------------------------------------------

BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_PATH = BASE_DIR / ".env"

load_dotenv(dotenv_path=ENV_PATH)


class Settings(BaseSettings):
    DATABASE_URL: str
    ENVIRONMENT: str = "development"
    DATABASE_ECHO: bool = False
    LOG_LEVEL: str = "INFO"

    # Background jobs (env: SCHEDULER_ENABLED=false disables both tickers, e.g. in tests)
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = Field(default="Europe/Moscow", description="Timezone for daily jobs")
    SCHEDULER_STARTUP_DELAY_SECONDS: float = Field(default=10.0, description="Delay before the first tick")
    OFFER_SCHEDULER_INTERVAL_SECONDS: float = Field(default=60.0, description="Offer activation tick interval")
    QUALITY_SCORE_JOB_ENABLED: bool = True
    QUALITY_SCORE_JOB_HOUR: int = Field(default=3, ge=0, le=23)
    QUALITY_SCORE_JOB_MINUTE: int = Field(default=0, ge=0, le=59)
    QUALITY_SCORE_MAX_CONCURRENCY: int = Field(default=4, ge=1)

    # Anti-spam: minimum hours between two identical offer notifications to one subscriber
    ANTISPAM_HOURS: float = Field(
        default=24.0,
        validation_alias=AliasChoices("ANTISPAM_HOURS", "WAITLIST_ANTISPAM_HOURS"),
    )
    DEFAULT_SUBSCRIPTION_RADIUS_KM: float = 5.0

    # Quality badge thresholds
    MIN_ORDERS: int = 10
    MIN_QUALITY_SCORE: float = 75.0
    MIN_COMPLETION_RATE: float = Field(default=0.90, description="Fraction, not percent")
    MIN_AVG_RATING: float = 4.5

    # Push transport: "webpush" (VAPID) or "fcm". Leave credentials empty to only log sends.
    PUSH_TRANSPORT: str = "webpush"
    VAPID_PUBLIC_KEY: str = ""
    VAPID_PRIVATE_KEY: str = ""
    VAPID_SUBJECT: str = "mailto:admin@kindplate.ru"
    FIREBASE_CREDENTIALS_PATH: str = Field(default="", description="Path to Firebase service account JSON file")
    FIREBASE_CREDENTIALS_JSON: str = Field(default="", description="Alternatively: raw JSON string of service account (e.g. from env)")
    PUSH_SEND_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    PUSH_MAX_CONCURRENCY: int = Field(default=10, ge=1)
    PUSH_ICON_URL: str = "/kandlate.png"
    PUSH_BADGE_URL: str = "/kandlate.png"

    # Bearer token for the operator job API; empty disables the endpoints
    JOBS_API_TOKEN: str = ""

    class Config:
        extra = "ignore"
        env_file = str(ENV_PATH)
        env_file_encoding = "utf-8"


settings = Settings()
