from fastapi import Request
from fastapi.responses import JSONResponse
import logging
from typing import Dict, Any
from festival_portal.core.logging import log_request_context

logger = logging.getLogger(__name__)

class APIError(Exception):
    """Base API exception"""

    def __init__(self, message: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class AuthenticationError(APIError):
    """Authentication related errors"""

    def __init__(self, message: str = "Authentication required", details: Dict[str, Any] = None):
        super().__init__(message, 401, details)

class AuthorizationError(APIError):
    """Authorization related errors"""

    def __init__(self, message: str = "Access denied", details: Dict[str, Any] = None):
        super().__init__(message, 403, details)

class TenantError(APIError):
    """Festival (tenant) lookup errors"""

    def __init__(self, message: str = "Festival not found", details: Dict[str, Any] = None):
        super().__init__(message, 404, details)

class ValidationError(APIError):
    """Validation related errors"""

    def __init__(self, message: str = "Validation failed", details: Dict[str, Any] = None):
        super().__init__(message, 400, details)

class ExportError(APIError):
    """CSV/PDF generation failed; no artifact was produced"""

    def __init__(self, message: str = "Export generation failed", details: Dict[str, Any] = None):
        super().__init__(message, 500, details)

def _principal_context(request: Request) -> Dict[str, Any]:
    principal = getattr(request.state, 'principal', None)
    return log_request_context(
        getattr(principal, 'festival_id', None),
        getattr(principal, 'user_id', None),
        request.url.path
    )

async def api_exception_handler(request: Request, exc: APIError):
    """Handle custom API exceptions with logging"""

    context = _principal_context(request)
    context.update({
        "error_type": exc.__class__.__name__,
        "status_code": exc.status_code,
        "method": request.method
    })

    if exc.status_code >= 500:
        logger.error(f"API Error: {exc.message}", extra={"context": context})
    else:
        logger.warning(f"API Error: {exc.message}", extra={"context": context})

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "message": exc.message,
            "details": exc.details,
            "timestamp": context["timestamp"]
        }
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""

    context = _principal_context(request)
    context.update({
        "error_type": exc.__class__.__name__,
        "method": request.method
    })

    logger.error(f"Unexpected error: {str(exc)}", extra={"context": context}, exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": True,
            "message": "Internal server error",
            "timestamp": context["timestamp"]
        }
    )
