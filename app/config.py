import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/sayit"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Tokens
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_issuer: str = os.getenv("JWT_ISSUER", "sayit-auth-service")
    citizen_token_hours: int = int(os.getenv("CITIZEN_TOKEN_HOURS", "168"))
    staff_admin_token_hours: int = int(os.getenv("STAFF_ADMIN_TOKEN_HOURS", "8"))
    staff_token_hours: int = int(os.getenv("STAFF_TOKEN_HOURS", "12"))
    agent_token_hours: int = int(os.getenv("AGENT_TOKEN_HOURS", "12"))
    anonymous_token_days: int = int(os.getenv("ANONYMOUS_TOKEN_DAYS", "30"))

    # Access codes
    identity_code_days: int = int(os.getenv("IDENTITY_CODE_DAYS", "30"))
    identity_code_max_days: int = int(os.getenv("IDENTITY_CODE_MAX_DAYS", "90"))
    recovery_code_hours: int = int(os.getenv("RECOVERY_CODE_HOURS", "24"))

    # Passwords
    password_min_length: int = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))
    bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Notifications
    citizen_notification_days: int = int(os.getenv("CITIZEN_NOTIFICATION_DAYS", "60"))
    notification_days: int = int(os.getenv("NOTIFICATION_DAYS", "30"))

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )
    celery_task_always_eager: bool = _env_bool("CELERY_TASK_ALWAYS_EAGER")

    # Outbound email (transactional HTTP API)
    email_api_url: str = os.getenv("EMAIL_API_URL", "")
    email_api_key: str = os.getenv("EMAIL_API_KEY", "")
    email_from_address: str = os.getenv("EMAIL_FROM_ADDRESS", "no-reply@sayit.local")
    email_from_name: str = os.getenv("EMAIL_FROM_NAME", "SAYIT Platform")
    frontend_url: str = os.getenv("FRONTEND_URL", "https://sayit.example.com")

    # S3 / MinIO settings
    s3_endpoint_url: str = os.getenv("S3_ENDPOINT_URL", "")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "")
    s3_bucket_name: str = os.getenv("S3_BUCKET_NAME", "sayit-attachments")
    s3_region: str = os.getenv("S3_REGION", "us-east-1")
    attachment_max_size_bytes: int = int(
        os.getenv("ATTACHMENT_MAX_SIZE_BYTES", str(10 * 1024 * 1024))
    )  # 10MB
    attachment_allowed_types: str = os.getenv(
        "ATTACHMENT_ALLOWED_TYPES",
        "image/jpeg,image/png,image/gif,image/webp,application/pdf,video/mp4,audio/mpeg",
    )

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_format: str = os.getenv(
        "LOG_FORMAT", "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )


settings = Settings()
