from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

load_dotenv(override=True)

class Settings(BaseSettings):
    PROJECT_NAME: str = "Blockchain Secure Docs API"
    SERVICE_NAME: str = "blockchain-secure-docs-api"
    # Application settings
    VERSION: str = "0.4.0"
    ENVIRONMENT: str = "development"  # development | production | test
    HOST: str = "127.0.0.1"
    PORT: int = 4000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # SQLAlchemy database URL
    DATABASE_URL: str

    # Comma separated list, e.g. "http://localhost:5173,https://app.example.com"
    CLIENT_ORIGIN: str = "http://localhost:5173"

    # Wallet login configuration
    NONCE_NUM_BYTES: int = Field(32, ge=16, le=64)  # 64..128 hex characters, fits identities.nonce
    AUTH_NONCE_FALLBACK_ENABLED: bool = True
    AUTH_RATE_LIMIT_PER_MINUTE: int = 30
    MAX_BODY_BYTES: int = 1024 * 1024  # JSON body limit, 1 MB

    # Redis settings (rate limit counters), memory is used when unset
    REDIS_HOST: str | None = None
    REDIS_PORT: int | None = 6379
    REDIS_MAX_CONNECTIONS: int | None = 10
    REDIS_SSL: bool | None = False
    REDIS_RECHECK_INTERVAL: int = 30 * 60  # 30 minutes in seconds

    class Config:
        env_file = ".env"

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.CLIENT_ORIGIN.split(",") if o.strip()]


# Instantiate the settings
settings = Settings()
