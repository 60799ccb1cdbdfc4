# backend/nocmon/config.py
from pydantic_settings import BaseSettings
from urllib.parse import quote_plus # escape special characters in passwords

class Settings(BaseSettings):
    # Main store: temperature/humidity, electrical, fire/smoke, users
    DB_DRIVER: str = "postgresql+asyncpg"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_HOST: str = "localhost"
    DB_PORT: str = "5432"
    DB_NAME: str = "suhu"
    DB_POOL_SIZE: int = 10

    # Access-control store (RFID door logs)
    ACCESS_DB_NAME: str = "rfid_access_control"
    ACCESS_DB_POOL_SIZE: int = 5

    # Full URLs win over the components above when set
    DATABASE_URL: str = ""
    ACCESS_DATABASE_URL: str = ""

    # Pool initialisation: 5 attempts, 5s apart
    DB_CONNECT_RETRIES: int = 5
    DB_CONNECT_DELAY: float = 5.0

    # Per-query retries: 3 attempts, 1s apart
    QUERY_RETRIES: int = 3
    QUERY_RETRY_DELAY: float = 1.0

    ACCESS_LOG_LIMIT: int = 5

    # Timestamps are naive local time in this offset
    TIMEZONE_OFFSET_HOURS: int = 7

    # --- Auth ---
    SECRET_KEY: str = "your-secret-key"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # --- Broadcast / transport ---
    BROADCAST_INTERVAL_SECONDS: float = 5.0
    WS_PING_INTERVAL: float = 25.0
    WS_PING_TIMEOUT: float = 60.0

    CORS_ORIGIN: str = "https://dev-suhu.umm.ac.id"

    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "noc_monitor.log"

    HOST: str = "0.0.0.0"
    PORT: int = 3001
    SSL_KEYFILE: str = ""
    SSL_CERTFILE: str = ""

    @property
    def SSL_ENABLED(self) -> bool:
        return bool(self.SSL_KEYFILE and self.SSL_CERTFILE)

    def _build_url(self, db_name: str) -> str:
        password = quote_plus(self.DB_PASSWORD)
        return f"{self.DB_DRIVER}://{self.DB_USER}:{password}@{self.DB_HOST}:{self.DB_PORT}/{db_name}"

    @property
    def MAIN_DB_URL(self) -> str:
        return self.DATABASE_URL or self._build_url(self.DB_NAME)

    @property
    def ACCESS_DB_URL(self) -> str:
        return self.ACCESS_DATABASE_URL or self._build_url(self.ACCESS_DB_NAME)

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
