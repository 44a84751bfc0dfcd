"""scoresynth API — FastAPI application serving catalogues, harmony and audio export."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scoresynth import __version__
from scoresynth.api.routes import harmony, health, reference, render
from scoresynth.config import get_engine_config
from scoresynth.score.harmony import HarmonyGenerator, load_harmony_tables
from scoresynth.score.models import load_drum_db, load_instrument_db


def create_app(harmony_delay_s: float | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        harmony_delay_s: Simulated harmony processing delay; defaults to the
            engine config value.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Load configuration and catalogues on startup."""
        config = get_engine_config()
        app.state.config = config
        app.state.instruments = load_instrument_db()
        app.state.drums = load_drum_db()
        app.state.harmony_tables = load_harmony_tables()
        delay = config.harmony_delay_s if harmony_delay_s is None else harmony_delay_s
        app.state.harmony_generator = HarmonyGenerator(
            delay_s=delay, tables=app.state.harmony_tables,
        )
        yield

    app = FastAPI(
        title="scoresynth",
        description="Multi-track score synthesis and audio export API",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api/v1", tags=["health"])
    app.include_router(reference.router, prefix="/api/v1", tags=["reference"])
    app.include_router(harmony.router, prefix="/api/v1", tags=["harmony"])
    app.include_router(render.router, prefix="/api/v1", tags=["render"])

    return app


app = create_app()
