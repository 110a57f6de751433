"""FastAPI application entry point for the Reading Companion API."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes.annotations import router as annotations_router
from app.api.routes.books import router as books_router
from app.api.routes.chat import router as chat_router
from app.api.routes.library import router as library_router
from app.api.routes.users import router as users_router
from app.config import settings
from app.core.container import ServiceContainer, build_services
from app.database import init_db
from app.services.errors import ReadingCompanionError

logger = logging.getLogger(__name__)


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        services: Prebuilt service container; built from settings when None
            and then owned (closed on shutdown) by the app.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        container = services or build_services(settings)
        init_db(container.engine)
        app.state.services = container
        logger.info("Reading Companion API started")

        yield

        if owned:
            container.close()
        else:
            container.sessions.clear()

    app = FastAPI(
        title="Reading Companion API",
        description="Personal library, annotations and book-scoped AI chat",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    app.include_router(users_router)
    app.include_router(books_router)
    app.include_router(library_router)
    app.include_router(annotations_router)
    app.include_router(chat_router)

    @app.exception_handler(ReadingCompanionError)
    async def service_error_handler(request: Request, exc: ReadingCompanionError):
        """
        Translate service errors into JSON responses.

        Expected conditions (quota, duplicates, validation) are not logged.
        """
        if not exc.expected:
            logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Hide internal error details from clients."""
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()
