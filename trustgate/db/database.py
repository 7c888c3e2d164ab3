import asyncio
import logging

import asyncpg

logger = logging.getLogger(__name__)

CONNECT_ATTEMPTS = 5
BACKOFF_BASE_SECONDS = 1.0
BACKOFF_CAP_SECONDS = 8.0

# Explore queries run on the request path; fail them fast.
STATEMENT_TIMEOUT_MS = 5000


def _dsn(database_url: str) -> str:
    if database_url.startswith("postgres://"):
        return "postgresql://" + database_url.removeprefix("postgres://")
    return database_url


async def create_pool(
    database_url: str,
    max_retries: int = CONNECT_ATTEMPTS,
    min_size: int = 1,
    max_size: int = 10,
) -> asyncpg.Pool:
    """Open the pool, retrying with capped exponential backoff while Postgres starts.

    Raises RuntimeError once every attempt has failed; callers decide whether
    the service can run without a database.
    """
    delay = BACKOFF_BASE_SECONDS
    last_error: Exception | None = None

    for attempt in range(1, max_retries + 1):
        pool = None
        try:
            pool = await asyncpg.create_pool(
                _dsn(database_url),
                min_size=min_size,
                max_size=max_size,
                max_inactive_connection_lifetime=1800,
                server_settings={"statement_timeout": str(STATEMENT_TIMEOUT_MS)},
            )
            await pool.fetchval("SELECT 1")
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError) as e:
            last_error = e
            if pool is not None:
                await pool.close()
            logger.warning("database connect attempt %d/%d failed: %s", attempt, max_retries, e)
            if attempt < max_retries:
                await asyncio.sleep(delay)
                delay = min(delay * 2, BACKOFF_CAP_SECONDS)
            continue

        logger.info("database connected (pool %d..%d)", min_size, max_size)
        return pool

    raise RuntimeError(f"database unavailable after {max_retries} attempts") from last_error
