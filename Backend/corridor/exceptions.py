"""
Exception taxonomy and FastAPI exception handlers
"""
import logging
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class CorridorError(Exception):
    """Base class for corridor worker errors"""


class ConfigurationError(CorridorError):
    """Missing credentials or unusable configuration; aborts the whole run"""


class FeedError(CorridorError):
    """Upstream feed could not be fetched or parsed"""


class NormalizationError(CorridorError):
    """Text-normalization response was missing, malformed or out of bounds"""


class CacheError(CorridorError):
    """Cache collaborator failed to read or write"""


async def http_exception_handler(request: Request, exc: HTTPException):
    """Consistent JSON body for HTTP errors"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": str(exc.detail),
            "status_code": exc.status_code,
            "message": f"Request failed with HTTP {exc.status_code}"
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "error": "Validation error",
            "details": exc.errors(),
            "message": "Request validation failed. Check parameters and try again."
        }
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Log the full error, return a safe message"""
    logger.error(f"Unexpected error handling {request.url}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later.",
            "status": "error"
        }
    )
