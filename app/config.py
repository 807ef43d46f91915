from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_TITLE: str = "HR Management API"
    MONGODB_URL: str
    DATABASE_NAME: str = "hr_system"
    PRODUCTION_MODE: bool = False
    SECRET_KEY: str
    REFRESH_SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    PASSWORD_RESET_EXPIRE_MINUTES: int = 10
    CLIENT_URL: Optional[str] = None
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_SIZE: int = 5 * 1024 * 1024
    RATE_LIMIT_REQUESTS: int = 1000
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    SMTP_USER: Optional[str] = None
    SMTP_USER_PWD: Optional[str] = None
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587

    class Config:
        env_file = ".env"

settings = Settings()
