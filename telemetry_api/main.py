from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from . import __version__
from .container import ServiceContainer, build_container
from .endpoints import devices_router, diagnostics_router, health_router

logger = logging.getLogger(__name__)


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """Crea la aplicación FastAPI.

    Si no se inyecta un container, el lifespan construye uno desde la
    configuración y es dueño de su arranque/parada (flush, sweep, MQTT).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.container is None
        if owned:
            app.state.container = build_container()
            app.state.container.start()
        try:
            yield
        finally:
            if owned:
                app.state.container.stop()
                app.state.container = None

    app = FastAPI(title="Field Telemetry Service", version=__version__, lifespan=lifespan)
    app.state.container = container

    app.include_router(health_router)
    app.include_router(devices_router)
    app.include_router(diagnostics_router)
    return app


app = create_app()
