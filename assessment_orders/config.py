"""
Assessment Orders Configuration
===============================

PURPOSE:
    Pydantic-Settings based configuration for the order service.
    All settings can be overridden via environment variables (ORDERS_ prefix)
    or a local .env file.
"""

import logging
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Service settings: store connection, worker tuning, logging."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="ORDERS_", extra="ignore")

    app_name: str = "assessment-orders"
    environment: Literal["development", "test", "production"] = "development"
    debug: bool = False  # echoes SQL when on

    # HTTP bind (python -m assessment_orders)
    host: str = "0.0.0.0"
    port: int = 3000

    # Store connection
    database_url: str = "sqlite:///data/assessment_orders.db"
    # Pool bounds for non-SQLite backends: pool_size persistent + max_overflow burst
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=15, ge=0)
    db_pool_timeout_s: float = Field(default=5.0, gt=0)
    db_query_timeout_s: float = Field(default=45.0, gt=0)

    # Background completion worker
    order_processor_enabled: bool = True
    order_processor_interval_ms: int = Field(default=5000, gt=0)
    order_processor_batch_size: int = Field(default=100, gt=0)
    order_processor_shutdown_timeout_s: float = Field(default=10.0, ge=0)
    # None drains the whole backlog inside one tick
    order_processor_max_batches_per_tick: Optional[int] = Field(default=None, gt=0)

    # Logging
    log_dir: str = "logs"
    log_level: str = "INFO"

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173", "http://localhost:8080"]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
