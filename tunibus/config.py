from pydantic_settings import BaseSettings
from typing import List

DEFAULT_SECRET_KEY = "dev-secret-key"
DEFAULT_TICKET_SECRET = "dev-secret"


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./tunibus.db"

    # Security
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480
    TICKET_SECRET: str = DEFAULT_TICKET_SECRET

    # Application
    PROJECT_NAME: str = "TuniBus Transport System"
    API_PREFIX: str = "/api"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Domain tuning
    TRACKING_STALE_SECONDS: int = 300
    LOYALTY_POINTS_PER_DINAR: float = 1.0
    OPTIMIZATION_INTERVAL_SECONDS: int = 3600

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def check_secrets(self):
        """Refuse development secrets outside development"""
        if self.ENVIRONMENT == "development":
            return
        if self.SECRET_KEY == DEFAULT_SECRET_KEY or self.TICKET_SECRET == DEFAULT_TICKET_SECRET:
            raise RuntimeError("SECRET_KEY and TICKET_SECRET must be set outside development")

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
