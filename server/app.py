from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

import config
from server.routes import create_router


def create_app(db, coordinator, transcriber) -> FastAPI:
    app = FastAPI(title="IDS Note", version="0.1.0")

    router = create_router(db, coordinator, transcriber)
    app.include_router(router, prefix="/api")

    app.mount("/", StaticFiles(directory=str(config.STATIC_DIR), html=True), name="static")

    return app
