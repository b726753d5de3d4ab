"""
Async Postgres access: pool lifecycle, schema, and translation of connectivity errors.
Every query in the service goes through connection() so that an unreachable database
surfaces as UpstreamFailureError instead of a driver-specific exception.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg

from driver_hub.config import settings
from driver_hub.errors import UpstreamFailureError
from driver_hub.metrics import upstream_failures_total

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None

CONNECTIVITY_ERRORS = (
    OSError,
    asyncpg.exceptions.InterfaceError,
    asyncpg.exceptions.PostgresConnectionError,
)


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        try:
            _pool = await asyncpg.create_pool(
                settings.database_url,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
                command_timeout=settings.db_command_timeout,
            )
        except CONNECTIVITY_ERRORS as e:
            upstream_failures_total.labels(service="database").inc()
            logger.error("Could not create database pool: %s", e)
            raise UpstreamFailureError("database", str(e)) from e
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


@asynccontextmanager
async def connection(pool) -> AsyncIterator[asyncpg.Connection]:
    """Acquire a connection; connectivity failures become UpstreamFailureError."""
    try:
        async with pool.acquire() as conn:
            yield conn
    except CONNECTIVITY_ERRORS as e:
        upstream_failures_total.labels(service="database").inc()
        logger.error("Database unavailable: %s", e)
        raise UpstreamFailureError("database", str(e)) from e


SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id BIGSERIAL PRIMARY KEY,
    auth_id VARCHAR(255) NOT NULL UNIQUE,
    full_name VARCHAR(255),
    email VARCHAR(255),
    phone VARCHAR(50),
    vehicle_number VARCHAR(50),
    vehicle_type VARCHAR(50),
    photo VARCHAR(512),
    is_active BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS orders (
    id BIGSERIAL PRIMARY KEY,
    driver_id BIGINT NOT NULL REFERENCES users(id),
    status VARCHAR(20) NOT NULL DEFAULT 'confirmed'
        CHECK (status IN ('confirmed', 'accepted', 'picked_up', 'on_way', 'reached', 'delivered', 'cancelled')),
    total_amount NUMERIC(12, 2) NOT NULL DEFAULT 0 CHECK (total_amount >= 0),
    payment_method VARCHAR(50),
    payment_status VARCHAR(50),
    start TEXT,
    destination TEXT,
    remark TEXT,
    photo_proof VARCHAR(512),
    completion_time TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_orders_driver_created ON orders(driver_id, created_at);

CREATE TABLE IF NOT EXISTS driver_sessions (
    id BIGSERIAL PRIMARY KEY,
    user_id BIGINT NOT NULL REFERENCES users(id),
    start_time TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    end_time TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS idx_driver_sessions_user_start ON driver_sessions(user_id, start_time);
CREATE UNIQUE INDEX IF NOT EXISTS uq_driver_sessions_open
    ON driver_sessions(user_id) WHERE end_time IS NULL;

CREATE TABLE IF NOT EXISTS penalties (
    id BIGSERIAL PRIMARY KEY,
    driver_id BIGINT NOT NULL REFERENCES users(id),
    order_id BIGINT REFERENCES orders(id),
    amount NUMERIC(12, 2) NOT NULL DEFAULT 0,
    severity VARCHAR(10) NOT NULL DEFAULT 'medium' CHECK (severity IN ('low', 'medium', 'high')),
    status VARCHAR(20) NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'processed', 'cancelled')),
    appeal_status VARCHAR(20) NOT NULL DEFAULT 'none' CHECK (appeal_status IN ('none', 'pending', 'approved')),
    appeal_reason TEXT,
    can_appeal BOOLEAN NOT NULL DEFAULT TRUE,
    reason TEXT,
    resolution_notes TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS notifications (
    id BIGSERIAL PRIMARY KEY,
    recipient_id BIGINT NOT NULL,
    recipient_type VARCHAR(20) NOT NULL DEFAULT 'driver',
    type VARCHAR(20) NOT NULL DEFAULT 'system',
    title VARCHAR(255) NOT NULL,
    message TEXT,
    is_read BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_notifications_recipient
    ON notifications(recipient_id, recipient_type, created_at);

CREATE TABLE IF NOT EXISTS user_reviews (
    id BIGSERIAL PRIMARY KEY,
    user_id BIGINT NOT NULL REFERENCES users(id),
    order_id BIGINT REFERENCES orders(id),
    rating SMALLINT NOT NULL CHECK (rating BETWEEN 1 AND 5),
    comment TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


async def init_schema(pool: asyncpg.Pool) -> None:
    async with connection(pool) as conn:
        await conn.execute(SCHEMA)
