import asyncio
import contextlib
import random
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trustgate.config import Settings, settings
from trustgate.db.database import create_pool
from trustgate.middleware.logging import StructuredLoggingMiddleware, configure_logging
from trustgate.middleware.ratelimit import RateLimitMiddleware
from trustgate.models.credibility import default_credibility_config
from trustgate.models.game import AntiGamingConfig
from trustgate.routers import (
    actions,
    challenges,
    credibility,
    explore,
    health,
    leaderboard,
    metrics,
    moderation,
)
from trustgate.services import badge_worker
from trustgate.services.action_counter import InMemoryActionCounter, RedisActionCounter
from trustgate.services.antigaming_service import AntiGamingValidator
from trustgate.services.behavior_store import (
    InMemoryBehaviorStore,
    RedisBehaviorStore,
    create_redis_client,
)
from trustgate.services.candidate_store import PostgresCandidateStore, PostgresOfferStore
from trustgate.services.explore_service import ExploreComposer
from trustgate.services.leaderboard_service import LeaderboardVerifier
from trustgate.services.score_history import InMemoryScoreHistory, RedisScoreHistory

configure_logging(log_level=settings.log_level, service="trustgate")
logger = structlog.get_logger()

ROUTERS = (health, credibility, actions, leaderboard, challenges, moderation, explore, metrics)


async def _open_antigaming(app: FastAPI, cfg: Settings) -> None:
    """Redis-backed profiles, counters and score history, or process-local ones without Redis.

    The action counter also backs the HTTP rate limits.
    """
    config = AntiGamingConfig()
    app.state.redis = await create_redis_client(cfg.redis_url)
    if app.state.redis is None:
        logger.warning("redis unavailable, behavior profiles kept in memory")
        store = InMemoryBehaviorStore()
        counter = InMemoryActionCounter()
        history = InMemoryScoreHistory()
    else:
        store = RedisBehaviorStore(app.state.redis)
        counter = RedisActionCounter(app.state.redis)
        history = RedisScoreHistory(app.state.redis)

    app.state.behavior_store = store
    app.state.action_counter = counter
    app.state.validator = AntiGamingValidator(config, store, counter)
    app.state.leaderboard_verifier = LeaderboardVerifier(config, store, history)


async def _open_database(app: FastAPI, cfg: Settings) -> asyncio.Task | None:
    """Explore and the badge worker need Postgres; everything else runs without it."""
    app.state.db_pool = None
    app.state.composer = None
    try:
        pool = await create_pool(
            cfg.database_url, min_size=cfg.db_pool_min_size, max_size=cfg.db_pool_max_size
        )
    except RuntimeError as e:
        logger.error("database unavailable, explore and badge worker disabled", error=str(e))
        return None

    app.state.db_pool = pool
    metrics.track_pool(pool)
    app.state.composer = ExploreComposer(
        PostgresCandidateStore(pool),
        PostgresOfferStore(pool),
        rng=random.Random(cfg.explore_shuffle_seed),
    )
    if not cfg.badge_worker_enabled:
        return None
    return asyncio.create_task(
        badge_worker.run(
            pool,
            app.state.credibility_config,
            interval_seconds=cfg.badge_worker_interval_seconds,
        ),
        name="badge-worker",
    )


def create_app(cfg: Settings = settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = cfg
        app.state.credibility_config = default_credibility_config()
        await _open_antigaming(app, cfg)
        worker = await _open_database(app, cfg)

        yield

        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
        if app.state.redis is not None:
            await app.state.redis.aclose()
        if app.state.db_pool is not None:
            await app.state.db_pool.close()
        logger.info("shutdown complete")

    app = FastAPI(title="trustgate", version="0.1.0", lifespan=lifespan)

    # Last added runs first: metrics, then logging, then rate limits, then CORS.
    origins, origin_regex = cfg.cors_rules()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_origin_regex=origin_regex,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-User-ID", "X-Request-ID"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "X-Request-ID"],
        max_age=86400,
    )
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(metrics.PrometheusMiddleware)

    if cfg.is_production and "*" in origins:
        logger.warning("wildcard CORS origin in production")

    for module in ROUTERS:
        app.include_router(module.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "trustgate.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=not settings.is_production,
    )
