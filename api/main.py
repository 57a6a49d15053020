from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from assets import router as assets_router
from assets.store import AssetStore
from auth import router as auth_router
from catalog import router as catalog_router
from comments import router as comments_router
from core import db, settings
from core.logs import configure_logging


@asynccontextmanager
async def lifespan(_: FastAPI):
    AssetStore(settings.files_dir()).ensure_root()
    # Initialize the DB pool once per process.
    await db.init_pool()
    try:
        yield
    finally:
        await db.close_pool()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="catalog-api", lifespan=lifespan)

    # Allow the frontend dev server to call this API from the browser.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router.router, tags=["auth"])
    app.include_router(assets_router.router, tags=["assets"])
    app.include_router(catalog_router.games_router, tags=["games"])
    app.include_router(catalog_router.books_router, tags=["books"])
    app.include_router(comments_router.router, tags=["comments"])

    # Served files are immutable: names are content hashes.
    app.mount("/files", StaticFiles(directory=settings.files_dir(), check_dir=False), name="files")

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "environment": settings.app_env()}

    return app


app = create_app()
