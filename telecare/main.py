# telecare/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI

from telecare.core.config import settings
from telecare.core.logging import configure_logging
from telecare.db.sql import dispose_engine, init_db
from telecare.routers import appointments, auth, availability, consultations, health, payments


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    The lifespan function is used to manage the FastAPI application lifecycle.
    """
    configure_logging()
    # Create tables if they don't exist
    await init_db()
    yield
    await dispose_engine()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Telecare Scheduling API",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    # Routing
    app.include_router(health.router, prefix=settings.API_PREFIX, tags=["health"])
    app.include_router(auth.router, prefix=settings.API_PREFIX)
    app.include_router(availability.router, prefix=settings.API_PREFIX)
    app.include_router(appointments.router, prefix=settings.API_PREFIX)
    app.include_router(consultations.router, prefix=settings.API_PREFIX)
    app.include_router(payments.router, prefix=settings.API_PREFIX)

    @app.get("/")
    def root():
        return {"message": "Telecare scheduling API running"}

    return app


app = create_app()
