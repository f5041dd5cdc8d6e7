"""
PostgreSQL schema for the fulfillment store.

Requests and orders are stored as JSON documents next to the columns used
for filtering and constraints; stock counters are plain columns so the
non-negative guard can be a single conditional UPDATE.
"""

import logging

import asyncpg
from asyncpg import Pool

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS medication_requests (
    request_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    pharmacy_id TEXT NOT NULL,
    status TEXT NOT NULL,
    urgency TEXT NOT NULL,
    requested_at TIMESTAMPTZ NOT NULL,
    request_data JSONB NOT NULL
);

CREATE INDEX IF NOT EXISTS medication_requests_user_idx
    ON medication_requests (user_id);
CREATE INDEX IF NOT EXISTS medication_requests_pharmacy_idx
    ON medication_requests (pharmacy_id, status);

CREATE TABLE IF NOT EXISTS orders (
    order_id TEXT PRIMARY KEY,
    order_number TEXT NOT NULL,
    request_id TEXT NOT NULL REFERENCES medication_requests (request_id),
    user_id TEXT NOT NULL,
    pharmacy_id TEXT NOT NULL,
    delivery_partner_id TEXT,
    status TEXT NOT NULL,
    payment_status TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL,
    order_data JSONB NOT NULL,
    CONSTRAINT orders_order_number_key UNIQUE (order_number)
);

CREATE UNIQUE INDEX IF NOT EXISTS orders_live_request_key
    ON orders (request_id) WHERE status <> 'cancelled';
CREATE INDEX IF NOT EXISTS orders_user_idx ON orders (user_id);
CREATE INDEX IF NOT EXISTS orders_pharmacy_idx ON orders (pharmacy_id);

CREATE TABLE IF NOT EXISTS stock (
    medication_id TEXT PRIMARY KEY,
    pharmacy_id TEXT NOT NULL,
    medication_name TEXT NOT NULL,
    quantity INTEGER NOT NULL CHECK (quantity >= 0),
    unit_price NUMERIC(12, 2) NOT NULL DEFAULT 0,
    low_stock_threshold INTEGER NOT NULL DEFAULT 10
);
"""

ORDER_NUMBER_CONSTRAINT = "orders_order_number_key"
LIVE_REQUEST_CONSTRAINT = "orders_live_request_key"

# First key of the two-key advisory lock taken while allocating order
# numbers; the second key is the year.
ORDER_NUMBER_LOCK_CLASS = 7301


async def create_pool(dsn: str) -> Pool:
    pool = await asyncpg.create_pool(dsn)
    logger.info("Created PostgreSQL connection pool")
    return pool


async def apply_schema(pool: Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA_SQL)
    logger.info("Applied PostgreSQL schema")
