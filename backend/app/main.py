from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.api.deps import close_client
from backend.app.api.v1.router import router as v1_router
from backend.app.core.config import get_settings
from backend.app.core.errors import InflowError
from backend.app.core.logging import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_client()


def create_app(debug: bool | None = None) -> FastAPI:
    if debug is None:
        debug = get_settings().debug
    configure_logging(debug)

    app = FastAPI(title="INFLOW TOOLS", version="0.1.0", lifespan=lifespan)
    app.include_router(v1_router, prefix="/v1")

    @app.exception_handler(InflowError)
    def inflow_error_handler(request: Request, exc: InflowError) -> JSONResponse:
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    return app
