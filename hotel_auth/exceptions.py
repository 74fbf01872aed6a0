from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import Optional


class APIException(HTTPException):
    status_code_default = 400
    reason = "error"

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(status_code=status_code or self.status_code_default, detail=detail)


class ValidationError(APIException):
    status_code_default = 400
    reason = "validation_error"


class NotFound(APIException):
    status_code_default = 404
    reason = "not_found"


class NoActiveCode(APIException):
    status_code_default = 400
    reason = "not_requested"

    def __init__(self, detail: str = "No OTP requested or OTP already used"):
        super().__init__(detail)


class Expired(APIException):
    status_code_default = 400
    reason = "expired"

    def __init__(self, detail: str = "OTP expired"):
        super().__init__(detail)


class Mismatch(APIException):
    status_code_default = 400
    reason = "invalid"

    def __init__(self, detail: str = "Invalid OTP"):
        super().__init__(detail)


class DeliveryFailure(APIException):
    """The code is stored but could not be sent; the client may request again."""
    status_code_default = 502
    reason = "delivery_failed"


class Unauthorized(APIException):
    status_code_default = 403
    reason = "unauthorized"


class Conflict(APIException):
    status_code_default = 409
    reason = "conflict"


class RateLimited(APIException):
    status_code_default = 429
    reason = "rate_limited"


class IdentityProviderError(APIException):
    status_code_default = 502
    reason = "identity_provider_error"


def create_error_response(error_message: str, reason: Optional[str] = None) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "message": error_message,
        "error": reason,
    }


def create_success_response(message: str, data: Optional[dict] = None) -> dict:
    """Create a standardized success response"""
    body = {
        "success": True,
        "message": message,
    }
    if data is not None:
        body["data"] = data
    return body


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", "unauthenticated")
        )

    reason = getattr(exc, "reason", None)
    if reason is None:
        reason = "unauthenticated" if exc.status_code == 401 else "error"
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(str(exc.detail), reason),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return JSONResponse(
        status_code=400,
        content=create_error_response(message, ValidationError.reason),
    )
