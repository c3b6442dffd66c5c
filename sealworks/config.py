from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Database
    POSTGRES_USER: str = "sealworks"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "sealworks"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None  # Overrides the POSTGRES_* URL (e.g. sqlite for tests)

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Logging
    LOG_LEVEL: str = "INFO"

    # Seals
    SEAL_QR_URL_PREFIX: str = "https://verify.sealworks.local/s/"
    SEAL_VERSION: str = "seal-v1"
    SHEET_LAYOUT_VERSION: str = "sheet-v1"
    MAX_TOKENS_PER_BATCH: int = 1000
    MAX_PAGES_PER_REQUEST: int = 50

    # Export
    EXPORT_DPI: int = 300
    FOOTER_FONT_SIZE_PT: float = 7.0

    # Binding sessions
    BINDING_SESSION_MINUTES: int = 5

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    class Config:
        env_file = ".env"
        extra = "allow"  # Allow extra environment variables


settings = Settings()
