"""Error handlers mapping linkhub exceptions to JSON responses"""

from fastapi import Request
from fastapi.responses import JSONResponse

from linkhub.utils.exceptions import LinkhubError
from linkhub.utils.logger import get_logger

logger = get_logger(__name__)


async def linkhub_exception_handler(request: Request, exc: LinkhubError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            path=request.url.path,
            error_type=exc.__class__.__name__,
            error=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
