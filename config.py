# ==========================================================================================================
# -------------- Configuration file for the Refer & Earn Flask application ---------------------------------
# ==========================================================================================================
import os
from dotenv import load_dotenv


if os.environ.get("FLASK_ENV") != "production":
    load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _split_origins(value):
    return [origin.strip() for origin in value.split(",") if origin.strip()]


def _admin_user_id(value):
    value = (value or "").strip()
    if not value:
        return None
    if not value.isdecimal():
        raise ValueError(f"ADMIN_USER_ID must be a numeric user id, got {value!r}")
    return int(value)


class Config:

    SECRET_KEY = os.getenv("SECRET_KEY")
    if not SECRET_KEY:
        raise ValueError("SECRET_KEY is not set")

    FLASK_ENV = os.getenv("FLASK_ENV", "production")
    DEBUG = os.getenv("DEBUG", "False").lower() in ("true", "1", "t")

    _database_url = os.getenv("DATABASE_URL")
    if not _database_url:
        _database_url = f"sqlite:///{os.path.join(basedir, 'instance', 'referearn.db')}"

    if _database_url.startswith("postgres://"):
        _database_url = _database_url.replace("postgres://", "postgresql+pg8000://", 1)

    SQLALCHEMY_DATABASE_URI = _database_url
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}
    if not _database_url.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,
            "pool_recycle": 300,
        }

    # Platform admin that receives the activation fee. When empty the first
    # user with role "admin" is used.
    ADMIN_USER_ID = _admin_user_id(os.getenv("ADMIN_USER_ID"))

    APP_URL = os.getenv("APP_URL", "http://localhost:3000")
    CORS_ORIGINS = _split_origins(
        os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")
    )

    # Bearer tokens issued by the identity provider
    TOKEN_MAX_AGE = int(os.getenv("TOKEN_MAX_AGE", str(7 * 24 * 3600)))
    TOKEN_SALT = os.getenv("TOKEN_SALT", "referearn-id-token")

    # Support inbox
    SUPPORT_EMAIL = os.getenv("SUPPORT_EMAIL")
    SUPPORT_FORM_URL = os.getenv("SUPPORT_FORM_URL")
    SUPPORT_FORM_TIMEOUT = int(os.getenv("SUPPORT_FORM_TIMEOUT", "15"))

    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = os.getenv("MAIL_USE_TLS", "True").lower() in ("true", "1", "t")
    MAIL_USERNAME = os.getenv("SUPPORT_EMAIL")
    MAIL_PASSWORD = os.getenv("SUPPORT_EMAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("SUPPORT_EMAIL")

    LOG_DIR = os.getenv("LOG_DIR", "logs")
    LOG_TO_FILE = os.getenv("LOG_TO_FILE", "True").lower() in ("true", "1", "t")
