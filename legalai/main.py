from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from legalai.config import settings
from legalai.dependencies import Services, build_services
from legalai.errors import register_error_handlers
from legalai.routes import auth, documents
from legalai.utils.logger import logger


def create_app(services: Optional[Services] = None, start_sweeper: bool = True) -> FastAPI:
    services = services or build_services()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if start_sweeper:
            for tracker in services.quota_trackers:
                tracker.start_sweeper(services.settings.QUOTA_SWEEP_INTERVAL_SECONDS)
            logger.info("Quota sweepers started.")
        yield
        for tracker in services.quota_trackers:
            await tracker.stop_sweeper()

    app = FastAPI(
        title="LegalAI Document Analyzer API",
        description="Upload legal documents and get AI risk analysis, with per-identity upload quotas",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=services.settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(auth.router)
    app.include_router(documents.router)

    @app.get("/")
    async def root():
        """Health check endpoint."""
        return {"status": "running", "environment": services.settings.ENVIRONMENT}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("legalai.main:app", host=settings.HOST, port=settings.PORT)
