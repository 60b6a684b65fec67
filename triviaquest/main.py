import logging
import random
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from .core.config import Settings, settings as default_settings
from .core.cors import setup_cors
from .core.logging import configure_logging
from .api.v1.routers import auth as auth_router
from .api.v1.routers import history as history_router
from .api.v1.routers import quizzes as quizzes_router
from .repositories.history_repository import (
    HistoryRepository,
    InMemoryHistoryRepository,
    SupabaseHistoryRepository,
)
from .repositories.session_store import InMemorySessionStore, RedisSessionStore, SessionStore
from .services.history_service import HistoryService
from .services.identity import IdentityProvider, LocalIdentityProvider, SupabaseIdentityProvider
from .services.quiz_machine import Clock, QuizMachineRegistry, utcnow
from .services.quiz_service import QuizService, history_recorder
from .services.trivia_source import TriviaSource

logger = logging.getLogger(__name__)


def _history_repository(cfg: Settings) -> HistoryRepository:
    if cfg.HISTORY_BACKEND == "supabase":
        from .core.supabase_client import get_supabase

        return SupabaseHistoryRepository(get_supabase())
    return InMemoryHistoryRepository()


def _identity_provider(cfg: Settings) -> IdentityProvider:
    if cfg.IDENTITY_BACKEND == "supabase":
        from .core.supabase_client import get_supabase

        return SupabaseIdentityProvider(get_supabase())
    return LocalIdentityProvider()


async def _session_store(cfg: Settings) -> SessionStore:
    if cfg.SESSION_BACKEND == "redis":
        from .core.redis_manager import get_redis

        return RedisSessionStore(await get_redis(), ttl_seconds=cfg.SESSION_TTL_SECONDS)
    return InMemorySessionStore()


def create_app(
    cfg: Optional[Settings] = None,
    *,
    trivia_source: Optional[TriviaSource] = None,
    session_store: Optional[SessionStore] = None,
    history_repository: Optional[HistoryRepository] = None,
    identity_provider: Optional[IdentityProvider] = None,
    clock: Clock = utcnow,
) -> FastAPI:
    """Build the API. Collaborators not passed in are created from ``cfg`` at startup."""
    cfg = cfg or default_settings
    configure_logging(cfg.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        http_client: Optional[httpx.AsyncClient] = None
        source = trivia_source
        if source is None:
            http_client = httpx.AsyncClient(timeout=cfg.TRIVIA_TIMEOUT_SECONDS)
            source = TriviaSource(
                http_client,
                cfg.TRIVIA_API_URL,
                encoding=cfg.TRIVIA_ENCODING,
                default_count=cfg.TRIVIA_QUESTION_COUNT,
            )
        store = session_store or await _session_store(cfg)
        history = history_repository or _history_repository(cfg)

        registry = QuizMachineRegistry(
            store,
            on_complete=history_recorder(history),
            auto_advance_delay=cfg.auto_advance_delay,
            clock=clock,
        )
        app.state.settings = cfg
        app.state.registry = registry
        app.state.identity = identity_provider or _identity_provider(cfg)
        app.state.history_service = HistoryService(history, list_limit=cfg.HISTORY_LIST_LIMIT)
        app.state.quiz_service = QuizService(
            registry,
            source,
            question_count=cfg.TRIVIA_QUESTION_COUNT,
            time_limit_choices=cfg.TIME_LIMIT_CHOICES,
            default_time_limit=cfg.DEFAULT_TIME_LIMIT,
            rng=random.Random(cfg.SHUFFLE_SEED),
            clock=clock,
        )
        logger.info(
            "%s ready (sessions=%s, history=%s, identity=%s)",
            cfg.APP_NAME, cfg.SESSION_BACKEND, cfg.HISTORY_BACKEND, cfg.IDENTITY_BACKEND,
        )
        try:
            yield
        finally:
            await registry.aclose()
            if http_client is not None:
                await http_client.aclose()
            if cfg.SESSION_BACKEND == "redis" and session_store is None:
                from .core.redis_manager import close_redis

                await close_redis()

    app = FastAPI(title=cfg.APP_NAME, lifespan=lifespan)
    setup_cors(app, cfg)

    app.include_router(quizzes_router.router, prefix=cfg.API_V1_PREFIX)
    app.include_router(history_router.router, prefix=cfg.API_V1_PREFIX)
    app.include_router(auth_router.router, prefix=cfg.API_V1_PREFIX)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    return app


app = create_app()
