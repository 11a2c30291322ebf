"""
StrategicFlow settings console
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    # Upstream REST API
    API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5000")
    API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", "30"))
    CSRF_COOKIE_NAME = os.getenv("CSRF_COOKIE_NAME", "csrf_token")
    CSRF_HEADER_NAME = os.getenv("CSRF_HEADER_NAME", "x-csrf-token")
    UPSTREAM_SESSION_COOKIE = os.getenv("UPSTREAM_SESSION_COOKIE", "connect.sid")

    # Console registry
    CONSOLE_MAX_SESSIONS = int(os.getenv("CONSOLE_MAX_SESSIONS", "500"))

    # Delay between the files of an "export everything" run
    EXPORT_STAGGER_SECONDS = float(os.getenv("EXPORT_STAGGER_SECONDS", "0.1"))

    # Origin used in registration links; falls back to the request host
    PUBLIC_ORIGIN = os.getenv("PUBLIC_ORIGIN")

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Flask-Limiter
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    API_BASE_URL = "http://upstream.test"
    PUBLIC_ORIGIN = "https://plan.example.com"
    EXPORT_STAGGER_SECONDS = 0
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production

    def __init__(self):
        if not os.getenv("API_BASE_URL"):
            raise RuntimeError("API_BASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
