import os


def _flag(name, default):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///local.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv("SECRET_KEY", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # >>> AUTH
    API_TOKEN_LENGTH = int(os.getenv("API_TOKEN_LENGTH", "80"))
    SEED_ADMIN_NAME = os.getenv("SEED_ADMIN_NAME", "admin")
    SEED_ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "admin123")

    # >>> DASHBOARD
    MAINTENANCE_SOON_MONTHS = int(os.getenv("MAINTENANCE_SOON_MONTHS", "1"))
    DASHBOARD_LIST_LIMIT = int(os.getenv("DASHBOARD_LIST_LIMIT", "10"))

    # >>> FRONTEND / ADMIN
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    ADMIN_ENABLED = _flag("ADMIN_ENABLED", "true")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    ADMIN_ENABLED = False
    LOG_LEVEL = "WARNING"
