"""FastAPI application bootstrap for Cuidamos."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import configure_logging
from .domain.clock import utcnow
from .domain.errors import CuidamosError, StorageFailure
from .infra.db import init_db
from .infra.feed import ChangeFeed
from .services.shifts import PresenceRegistry
from .routers import audit, organizations, patients, plans, shifts


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()
    yield


async def _domain_error(request: Request, exc: CuidamosError) -> JSONResponse:
    detail = exc.detail or exc.__class__.__name__
    if isinstance(exc, StorageFailure):
        detail = f"{detail}; please retry"
    return JSONResponse(status_code=exc.status_code, content={"detail": detail})


def create_app() -> FastAPI:
    app = FastAPI(title="Cuidamos API", version="0.1.0", lifespan=lifespan)
    app.state.feed = ChangeFeed()
    app.state.presence = PresenceRegistry(app.state.feed)
    app.state.now_fn = utcnow
    app.add_exception_handler(CuidamosError, _domain_error)

    app.include_router(organizations.router, prefix="/organizations", tags=["organizations"])
    app.include_router(patients.router, prefix="/organizations", tags=["patients"])
    app.include_router(shifts.router, prefix="/organizations", tags=["shifts"])
    app.include_router(plans.router, prefix="/plans", tags=["plans"])
    app.include_router(audit.router, prefix="/audit", tags=["audit"])

    return app


app = create_app()
