"""Configuration for FastAPI application"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # API Settings
    API_TITLE: str = "SwipeSync API"
    API_VERSION: str = "1.0.0"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://0.0.0.0:3000",
    ]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
