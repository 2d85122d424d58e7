import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pwa_gen.application import configure_services, get_background_runner
from pwa_gen.core.errors import PipelineError
from pwa_gen.core.logs import configure_logging
from pwa_gen.core.settings import Settings
from pwa_gen.routes import analyze, chats, history, jobs, users

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    configure_services(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await asyncio.to_thread(get_background_runner().wait, 5.0)

    app = FastAPI(title="PWA_Gen API", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    app.include_router(analyze.router, prefix="/api")
    app.include_router(jobs.router, prefix="/api")
    app.include_router(history.router, prefix="/api")
    app.include_router(users.router, prefix="/api")
    app.include_router(chats.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "PWA_Gen API",
                "docs": "/docs",
                "health": "/api/history",
            }
        )

    logger.info("PWA_Gen app created")
    return app


app = create_app()
