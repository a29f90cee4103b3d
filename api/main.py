"""
Inventory Engine API - Main Application.

FastAPI application exposing intake, putaway, lots, cost of goods and reporting.
Domain errors are translated to HTTP responses in one place.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from config.logging_config import configure_logging
from config.settings import get_settings
from domain.errors import InventoryError

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings)

# Create FastAPI application
app = FastAPI(
    title="Inventory Engine API",
    description="REST API for intake, storage, lots, cost of goods and sales of second-hand media",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    "NOT_FOUND": 404,
    "INVALID_TRANSITION": 409,
    "INVALID_RANGE": 422,
    "EMPTY_SELECTION": 400,
    "ALREADY_MEMBER": 409,
    "NOT_A_MEMBER": 409,
    "LOT_NUMBER_IN_USE": 409,
    "CONCURRENT_MODIFICATION": 409,
    "INVALID_INPUT": 422,
    "STORAGE_ERROR": 503,
}


@app.exception_handler(InventoryError)
async def handle_inventory_error(request: Request, exc: InventoryError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.code, 500)
    if status_code >= 500:
        logger.error(
            "Request failed",
            extra={"path": request.url.path, "error_code": exc.code, "details": exc.details},
            exc_info=exc,
        )
    else:
        logger.info(
            "Request rejected",
            extra={"path": request.url.path, "error_code": exc.code, "reason": exc.message},
        )
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.code,
            "detail": exc.message,
            "statusCode": status_code,
            "details": jsonable_encoder(exc.details),
        },
    )


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "inventory-engine-api",
        "storage": settings.storage_backend,
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Inventory Engine API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# Import and include routers
from api.routers import cog, intake, items, lots, reports

app.include_router(intake.router, prefix="/api/v1", tags=["Intake"])
app.include_router(items.router, prefix="/api/v1", tags=["Items"])
app.include_router(lots.router, prefix="/api/v1", tags=["Lots"])
app.include_router(cog.router, prefix="/api/v1", tags=["Cost of Goods"])
app.include_router(reports.router, prefix="/api/v1", tags=["Reports"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=8000)
