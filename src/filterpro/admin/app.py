"""FastAPI application factory for the admin API."""
from __future__ import annotations

from fastapi import FastAPI

from filterpro.admin import routes
from filterpro.console import RuleConsole
from filterpro.engine import FilterEngine


def create_app(engine: FilterEngine, console: RuleConsole | None = None) -> FastAPI:
    app = FastAPI(
        title="filterpro admin API",
        version="0.1.0",
        description="Manage message and command filtering rules.",
    )
    app.state.console = console or RuleConsole(engine)
    app.include_router(routes.router)

    @app.get("/health")
    async def health():
        """Unauthenticated health-check endpoint."""
        return {"status": "ok"}

    return app
