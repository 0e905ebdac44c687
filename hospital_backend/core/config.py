import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./hospital.db")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

EXPIRATION_SWEEP_ENABLED = _get_bool(os.getenv("EXPIRATION_SWEEP_ENABLED"), default=True)
EXPIRATION_SWEEP_INTERVAL_SECONDS = int(os.getenv("EXPIRATION_SWEEP_INTERVAL_SECONDS", "60"))
EXPIRATION_SWEEP_LOCK_TIMEOUT_SECONDS = float(os.getenv("EXPIRATION_SWEEP_LOCK_TIMEOUT_SECONDS", "30"))
EXPIRATION_SWEEP_MAX_ATTEMPTS = int(os.getenv("EXPIRATION_SWEEP_MAX_ATTEMPTS", "3"))
EXPIRATION_SWEEP_RETRY_MAX_WAIT_SECONDS = float(os.getenv("EXPIRATION_SWEEP_RETRY_MAX_WAIT_SECONDS", "4"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if EXPIRATION_SWEEP_INTERVAL_SECONDS <= 0:
        raise RuntimeError("EXPIRATION_SWEEP_INTERVAL_SECONDS must be positive.")
    if EXPIRATION_SWEEP_MAX_ATTEMPTS < 1:
        raise RuntimeError("EXPIRATION_SWEEP_MAX_ATTEMPTS must be at least 1.")
