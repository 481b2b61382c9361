from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://clearing_admin:clearing_secret@db:5432/clearing_db"
    DATABASE_ECHO: bool = False
    AUTO_CREATE_SCHEMA: bool = True
    JWT_SECRET: str = "clearing-jwt-secret-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 60
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    LOG_LEVEL: str = "INFO"
    PAGINATION_DEFAULT_LIMIT: int = 20
    PAGINATION_MAX_LIMIT: int = 100

    class Config:
        env_file = ".env"


settings = Settings()
