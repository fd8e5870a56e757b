import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """
    Reads all settings straight from environment variables.
    """
    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL")

    # Redis
    APPLICATION_REDIS_URL: str = os.environ.get("APPLICATION_REDIS_URL")
    RATE_LIMITER_REDIS_URL: str = os.environ.get("RATE_LIMITER_REDIS_URL", "memory://")

    # JWT and sessions
    SECRET_KEY: str = os.environ.get("SECRET_KEY")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    SESSION_TTL_SECONDS: int = int(os.environ.get("SESSION_TTL_SECONDS", 4 * 60 * 60))

    # The admin account is not stored in the database
    ADMIN_EMAIL: str = os.environ.get("ADMIN_EMAIL")
    ADMIN_PASSWORD: str = os.environ.get("ADMIN_PASSWORD")

    # Image hosting (Cloudinary-style unsigned upload)
    IMAGE_UPLOAD_URL: str = os.environ.get("IMAGE_UPLOAD_URL")
    IMAGE_UPLOAD_PRESET: str = os.environ.get("IMAGE_UPLOAD_PRESET")

    # IANA zone name, e.g. "Asia/Manila". Empty means the server's local zone.
    SCHOOL_TIMEZONE: str = os.environ.get("SCHOOL_TIMEZONE", "")

    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")
    CORS_ORIGINS: list = os.environ.get("CORS_ORIGINS", "*").split(",")

settings = Config()
