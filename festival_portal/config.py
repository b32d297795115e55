from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    # Database
    db_host: str = Field(default="localhost", alias='DB_HOST')
    db_port: int = Field(default=5432, alias='DB_PORT')
    db_user: str = Field(default="festival", alias='DB_USER')
    db_password: str = Field(default="festival", alias='DB_PASSWORD')
    db_name: str = Field(default="festival_portal", alias='DB_NAME')
    db_pool_min_size: int = Field(default=2, alias='DB_POOL_MIN_SIZE')
    db_pool_max_size: int = Field(default=10, alias='DB_POOL_MAX_SIZE')
    db_command_timeout: float = Field(default=60.0, alias='DB_COMMAND_TIMEOUT')

    # App settings
    app_env: str = Field(default="development", alias='APP_ENV')
    port: int = Field(default=8001, alias='FASTAPI_PORT')
    host: str = Field(default="0.0.0.0", alias='FASTAPI_HOST')
    debug: bool = Field(default=True, alias='DEBUG')
    cors_origins: str = Field(default="http://localhost:5173", alias='CORS_ORIGINS')

    # Reporting defaults (used when a festival row lacks them)
    default_currency: str = Field(default="NOK", alias='DEFAULT_CURRENCY')
    default_locale: str = Field(default="nb", alias='DEFAULT_LOCALE')

    # TicketCo sync
    ticketco_api_base: str = Field(
        default="https://ticketco.events/api/public/v1", alias='TICKETCO_API_BASE'
    )
    sync_enabled: bool = Field(default=False, alias='SYNC_ENABLED')
    sync_interval_seconds: int = Field(default=15 * 60, alias='SYNC_INTERVAL_SECONDS')
    sync_page_size: int = Field(default=100, alias='SYNC_PAGE_SIZE')
    sync_batch_size: int = Field(default=500, alias='SYNC_BATCH_SIZE')
    sync_request_timeout: float = Field(default=30.0, alias='SYNC_REQUEST_TIMEOUT')
    sync_tenant_timeout: float = Field(default=300.0, alias='SYNC_TENANT_TIMEOUT')
    sync_epoch: str = Field(default="2020-01-01T00:00:00+00:00", alias='SYNC_EPOCH')
    sync_max_pages: Optional[int] = Field(default=None, alias='SYNC_MAX_PAGES')

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def db_connection_params(self) -> dict:
        return {
            "host": self.db_host,
            "port": self.db_port,
            "user": self.db_user,
            "password": self.db_password,
            "database": self.db_name,
        }

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

settings = Settings()
