"""Main FastAPI application for the device ingest service."""

import logging

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from device_ingest.api import REQUIRED_FIELDS, router
from device_ingest.config import HOST, LOG_LEVEL, PORT

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Device Ingest API",
    description="FastAPI service recording which sensor types each wearable device reports",
    version="1.0.0",
)

app.include_router(router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject malformed ingestion requests with 400 and the endpoint's required fields."""
    message = REQUIRED_FIELDS.get(request.url.path, "invalid request")
    logger.warning(f"Rejected {request.method} {request.url.path}: {len(exc.errors())} validation error(s)")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors with the same {"error": ...} shape as validation errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


if __name__ == "__main__":
    logger.info(f"Server listening on port {PORT}")
    uvicorn.run(app, host=HOST, port=PORT)
