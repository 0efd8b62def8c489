import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from tradespark.core.exceptions import AppException

logger = logging.getLogger(__name__)


async def app_exception_handler(request: Request, exc: AppException):
    logger.info("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {
                "code": exc.code,
                "title": exc.title,
                "message": exc.message,
                "details": exc.details
            }
        }
    )
