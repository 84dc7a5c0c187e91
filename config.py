import os
from sqlalchemy.pool import QueuePool


def database_url(default):
    url = os.getenv("DATABASE_URL", default)
    # PyMySQL is the installed MySQL driver
    if url.startswith("mysql://"):
        url = url.replace("mysql://", "mysql+pymysql://", 1)
    return url


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "change_this_secret_key")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": QueuePool,
        "pool_size": 5,
        "max_overflow": 2,
        "pool_timeout": 10,
        "pool_pre_ping": True,
    }

    JWT_ALGORITHM = "HS256"
    TOKEN_COOKIE_NAME = "access_token"
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Tags kept when sanitising lesson rich text
    ALLOWED_CONTENT_TAGS = [
        "b", "i", "u", "strong", "em", "p", "br", "ul", "ol", "li", "a",
        "blockquote", "h1", "h2", "h3", "code", "pre"
    ]

    # Assessments saved without their own values
    DEFAULT_PASSING_SCORE = 70
    DEFAULT_ASSESSMENT_TITLE = "Lesson Assessment"


class DevConfig(Config):
    """Development Configuration"""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = database_url("mysql+pymysql://root:@localhost/digigyan")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "testing-secret-key-with-enough-length"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    # sqlite in-memory must share a single connection
    SQLALCHEMY_ENGINE_OPTIONS = {}
    LOG_LEVEL = "DEBUG"


class ProdConfig(Config):
    """Production Configuration"""
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = database_url("sqlite:///digigyan.db")


config_dict = {
    "development": DevConfig,
    "testing": TestConfig,
    "production": ProdConfig
}
