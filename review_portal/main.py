import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .crm_client import build_contact_tagger
from .errors import register_exception_handlers
from .routers import reviews
from .utils.logging import configure_logging
from .wordpress_client import build_review_backend

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    backend = app.state.review_backend
    tagger = app.state.contact_tagger
    logger.info(
        "%s started: reviews source=%s, crm=%s",
        app.title,
        backend.source,
        "mock" if tagger.mock_mode else "live",
    )
    yield
    await backend.aclose()
    await tagger.aclose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME, redirect_slashes=False, lifespan=lifespan)
    app.state.settings = settings
    app.state.review_backend = build_review_backend(settings)
    app.state.contact_tagger = build_contact_tagger(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(reviews.router, prefix=settings.API_PREFIX)

    @app.get("/health")
    def health():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.ENVIRONMENT,
        }

    return app


app = create_app()
