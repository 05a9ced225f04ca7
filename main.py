import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pymongo.errors import PyMongoError

import bikes
import biodata
import matrimony
import users
from config import settings
from database import Stores, create_client
from exceptions import ApiError
from middleware import REQUEST_ID_HEADER, RequestContextMiddleware, error_body
from payments import PaymentGateway

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    for noisy in ("uvicorn.access", "pymongo", "stripe", "httpx", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Open the store and the payment gateway once, unless they were injected.

    Whatever ends up on app.state here is never reassigned while serving.
    """
    setup_logging()
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("%s", e)

    client = None
    if getattr(app.state, "stores", None) is None:
        try:
            # SRV lookups happen in the constructor, so it can fail too
            client = create_client(settings)
            app.state.stores = Stores.from_client(client, settings)
            client.admin.command("ping")
            app.state.stores.ensure_indexes()
            logger.info("Connected to MongoDB (%s, %s)", settings.bikes_db_name, settings.matrimony_db_name)
        except PyMongoError as e:
            # Keep serving; data routes answer 503 until the store is reachable
            logger.error("MongoDB connection error: %s", e)
    if getattr(app.state, "payment_gateway", None) is None:
        app.state.payment_gateway = PaymentGateway.from_settings(settings)

    logger.info("Hunter & Matrimony API running on port %d", settings.port)
    yield

    if client is not None:
        client.close()
    logger.info("Shutdown complete.")


def register_exception_handlers(app: FastAPI) -> None:
    """Every failure kind maps to one status and one body shape on all routes."""

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error("%s %s: %s | %s", request.method, request.url.path, exc.message, exc.context)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.error, exc.message))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=error_body("invalid_parameter", "Request validation failed", details=details),
        )

    @app.exception_handler(PyMongoError)
    async def handle_database_error(request: Request, exc: PyMongoError):
        logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content=error_body(
                "upstream_unavailable",
                "The database is temporarily unavailable. Please try again later.",
            ),
        )


def create_app(
    stores: Optional[Stores] = None,
    payment_gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    app = FastAPI(title="Hunter & Matrimony API", version="1.0.0", lifespan=lifespan)
    app.state.stores = stores
    app.state.payment_gateway = payment_gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    # Outermost, so unhandled errors are answered inside the request context
    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)

    @app.get("/", response_class=PlainTextResponse)
    def read_root():
        return "Hunter & Matrimony server is running"

    app.include_router(bikes.router)
    app.include_router(users.router)
    app.include_router(biodata.router)
    app.include_router(matrimony.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
