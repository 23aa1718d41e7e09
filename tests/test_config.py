"""Tests for environment-driven Settings."""

import pytest
from pydantic import ValidationError

from assessment_orders.config import Settings


@pytest.fixture
def clean_env(monkeypatch):
    for key in (
        "ORDERS_DATABASE_URL",
        "ORDERS_PORT",
        "ORDERS_ENVIRONMENT",
        "ORDERS_ORDER_PROCESSOR_INTERVAL_MS",
        "ORDERS_ORDER_PROCESSOR_BATCH_SIZE",
        "ORDERS_ORDER_PROCESSOR_MAX_BATCHES_PER_TICK",
    ):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestSettings:
    def test_defaults(self, clean_env):
        s = Settings(_env_file=None)
        assert s.port == 3000
        assert s.order_processor_interval_ms == 5000
        assert s.order_processor_batch_size == 100
        assert s.order_processor_shutdown_timeout_s == 10.0
        assert s.order_processor_max_batches_per_tick is None
        assert s.db_query_timeout_s == 45.0
        assert s.is_production is False

    def test_env_overrides(self, clean_env):
        clean_env.setenv("ORDERS_DATABASE_URL", "postgresql://u:p@db/orders")
        clean_env.setenv("ORDERS_PORT", "8080")
        clean_env.setenv("ORDERS_ORDER_PROCESSOR_INTERVAL_MS", "250")
        clean_env.setenv("ORDERS_ORDER_PROCESSOR_BATCH_SIZE", "25")
        clean_env.setenv("ORDERS_ORDER_PROCESSOR_MAX_BATCHES_PER_TICK", "4")
        clean_env.setenv("ORDERS_ENVIRONMENT", "production")

        s = Settings(_env_file=None)

        assert s.database_url == "postgresql://u:p@db/orders"
        assert s.port == 8080
        assert s.order_processor_interval_ms == 250
        assert s.order_processor_batch_size == 25
        assert s.order_processor_max_batches_per_tick == 4
        assert s.is_production is True

    @pytest.mark.parametrize("key,value", [
        ("ORDERS_ORDER_PROCESSOR_BATCH_SIZE", "0"),
        ("ORDERS_ORDER_PROCESSOR_INTERVAL_MS", "-1"),
        ("ORDERS_ENVIRONMENT", "staging"),
    ])
    def test_rejects_invalid(self, clean_env, key, value):
        clean_env.setenv(key, value)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
