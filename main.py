from fastapi import FastAPI
from contextlib import asynccontextmanager
from app.core.config import settings
from app.core.db.base import dispose_engine, init_models
from app.core.logging import setup_logging
from app.apis.articles.main import router as articles_router
from app.apis.quiz.main import router as quiz_router
from app.apis.vocabulary.main import router as vocabulary_router
from app.apis.config.main import router as config_router
from app.apis.stats.main import router as stats_router
from app.modules.articles.templates import TemplateProvider

import uvicorn
from fastapi.middleware.cors import CORSMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_models()
    app.state.templates = TemplateProvider(settings.generation.templates_dir)
    # Built lazily on the first generate request
    app.state.generator = None
    yield
    await dispose_engine()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app.name, version=settings.app.version, lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(articles_router)
    app.include_router(quiz_router)
    app.include_router(vocabulary_router)
    app.include_router(config_router)
    app.include_router(stats_router)

    @app.get("/")
    async def root():
        return {
            "status": "ok",
            "app": settings.app.name,
            "version": settings.app.version,
        }

    return app


app = create_app()


if __name__ == "__main__":
    try:
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.app.port,
            reload=not settings.app.is_production,
        )
    except Exception as e:
        print(f"An error occurred when starting the server: {e}.")
