import os

from dotenv import load_dotenv
from sqlalchemy.engine import URL

load_dotenv()


def _database_url() -> str | URL:
    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit
    return URL.create(
        "postgresql",
        username=os.getenv("DB_USER", "postgres"),
        password=os.getenv("DB_PASSWORD", "postgres"),
        host=os.getenv("DB_HOST", "localhost"),
        port=int(os.getenv("DB_PORT", "5432")),
        database=os.getenv("DB_NAME", "healthbar"),
        query={"sslmode": os.getenv("DB_SSLMODE", "disable")},
    )


class Settings:
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    PORT: str | None = os.getenv("PORT")

    DATABASE_URL: str | URL = _database_url()

    JWT_SECRET: str = os.getenv("JWT_SECRET", "dev_secret_change_me")
    JWT_EXPIRATION_HOURS: int = int(os.getenv("JWT_EXPIRATION_HOURS", "24"))

    UPLOAD_PATH: str = os.getenv("UPLOAD_PATH", "/app/uploads")
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 << 20)))

    # Gateway
    AUTH_SERVICE_URL: str = os.getenv("AUTH_SERVICE_URL", "http://healthbar-auth-service:8001")
    PATIENT_SERVICE_URL: str = os.getenv("PATIENT_SERVICE_URL", "http://healthbar-patient-service:8002")
    DOCTOR_SERVICE_URL: str = os.getenv("DOCTOR_SERVICE_URL", "http://healthbar-doctor-service:8003")
    TIMELINE_SERVICE_URL: str = os.getenv("TIMELINE_SERVICE_URL", "http://healthbar-timeline-service:8004")
    PRESCRIPTION_SERVICE_URL: str = os.getenv(
        "PRESCRIPTION_SERVICE_URL", "http://healthbar-prescription-service:8005"
    )

    RATE_LIMIT_PER_SECOND: float = float(os.getenv("RATE_LIMIT_PER_SECOND", "10"))
    RATE_LIMIT_BURST: int = int(os.getenv("RATE_LIMIT_BURST", "20"))
    RATE_LIMIT_CLEANUP_SECONDS: float = float(os.getenv("RATE_LIMIT_CLEANUP_SECONDS", "300"))

    UPSTREAM_CONNECT_TIMEOUT: float = float(os.getenv("UPSTREAM_CONNECT_TIMEOUT", "5"))
    UPSTREAM_READ_TIMEOUT: float = float(os.getenv("UPSTREAM_READ_TIMEOUT", "30"))
    HEALTH_PROBE_TIMEOUT: float = float(os.getenv("HEALTH_PROBE_TIMEOUT", "2"))

    CORS_ORIGINS: list[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:8000").split(",")
        if origin.strip()
    ]


settings = Settings()
