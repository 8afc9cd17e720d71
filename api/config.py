"""
Environment-aware configuration.
Security keys, token lifetimes, CORS, mail and env flags.
Database URL is handled by DBStorage (APP_ENV / DATABASE_URL).
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    APP_NAME = os.getenv("APP_NAME", "StellarAid")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # access and refresh tokens are signed with independent secrets
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-access-secret-change-me")
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "dev-refresh-secret-change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "stellaraid-api")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "900")))
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("REFRESH_TOKEN_EXPIRES_SECONDS", "604800")))
    EMAIL_VERIFICATION_EXPIRES = timedelta(hours=int(os.getenv("EMAIL_VERIFICATION_EXPIRES_HOURS", "24")))
    PASSWORD_RESET_EXPIRES = timedelta(minutes=int(os.getenv("PASSWORD_RESET_EXPIRES_MINUTES", "60")))

    # argon2 parameters; None keeps the argon2-cffi defaults
    PASSWORD_HASH_TIME_COST = None
    PASSWORD_HASH_MEMORY_COST = None

    ALLOWED_ROLES = os.getenv("ALLOWED_ROLES", "user,admin,creator,donor").split(",")

    # Mail: leave MAIL_HOST empty to disable outgoing email
    MAIL_HOST = os.getenv("MAIL_HOST", "")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", "true")
    MAIL_FROM = os.getenv("MAIL_FROM", "noreply@stellaraid.com")
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()


class TestingConfig(BaseConfig):
    TESTING = True
    JWT_SECRET = "test-access-secret"
    JWT_REFRESH_SECRET = "test-refresh-secret"
    # cheap hashes keep the suite fast
    PASSWORD_HASH_TIME_COST = 1
    PASSWORD_HASH_MEMORY_COST = 64
    MAIL_HOST = ""


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
