# src/sv_app/api/main.py
from fastapi import FastAPI

from sv_app.core.config import get_settings
from sv_app.core.logging import configure_logging
from sv_app.core.registry import load_module_routers
from sv_app.version import get_version


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Snapvault", version=get_version(), debug=settings.DEBUG)
    configure_logging("DEBUG" if settings.DEBUG else "INFO")

    for r in load_module_routers():
        app.include_router(r, prefix="/api")

    @app.get("/health")
    def health():
        return {"status": "ok", "version": get_version()}

    return app


app = create_app()
