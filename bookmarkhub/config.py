import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'bookmarkhub.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    SIGNUP_ENABLED = os.environ.get("SIGNUP_ENABLED", "0") == "1"
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"
    FAVICON_SWEEP_INTERVAL_MINUTES = int(
        os.environ.get("FAVICON_SWEEP_INTERVAL_MINUTES", "720")
    )
    CONTENT_FETCH_TIMEOUT = float(os.environ.get("CONTENT_FETCH_TIMEOUT", "10"))
    CONTENT_MAX_BYTES = int(os.environ.get("CONTENT_MAX_BYTES", "2500000"))
    FAVICON_PROBE_TIMEOUT = float(os.environ.get("FAVICON_PROBE_TIMEOUT", "5"))
    LOGO_MIN_DIMENSION = int(os.environ.get("LOGO_MIN_DIMENSION", "256"))
    LOGO_TARGET_DIMENSION = int(os.environ.get("LOGO_TARGET_DIMENSION", "512"))
    ENHANCE_DELAY_SECONDS = float(os.environ.get("ENHANCE_DELAY_SECONDS", "0.1"))

    S3_BUCKET = os.environ.get("S3_BUCKET", "")
    S3_REGION = os.environ.get("S3_REGION", "us-west-2")
    S3_FOLDER_PREFIX = os.environ.get("S3_FOLDER_PREFIX", "")
    S3_ENDPOINT_URL = os.environ.get("S3_ENDPOINT_URL") or None
    S3_PUBLIC_BASE_URL = os.environ.get("S3_PUBLIC_BASE_URL") or None


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCHEDULER_ENABLED = False
    SIGNUP_ENABLED = True
    ENHANCE_DELAY_SECONDS = 0.0
    S3_BUCKET = "bookmarkhub-test"
