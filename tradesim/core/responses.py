"""
API Response Envelope

Every endpoint answers with the same envelope:

    {"status_code": 200, "message": "...", "data": {...}, "error": null}
    {"status_code": 404, "message": "...", "data": null,
     "error": {"code": "POSITION_NOT_FOUND", "message": "..."}}
"""

from typing import Any, Optional
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from tradesim.shared.exceptions import AppException


class ErrorDetail(BaseModel):
    """Machine-readable error code plus a human-readable message."""
    code: str = Field(..., description="Error code, e.g. POSITION_NOT_FOUND")
    message: str = Field(..., description="What went wrong")


class StandardResponse(BaseModel):
    """Envelope schema, used for OpenAPI docs."""
    status_code: int
    message: str
    data: Optional[Any] = None
    error: Optional[ErrorDetail] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status_code": 200,
                "message": "Trade executed",
                "data": {"trade_id": "trade_1700000000000_k2j3h4g5f", "status": "executed"},
                "error": None
            }
        }
    )


def success_response(status_code: int, message: str, data: Any = None) -> dict:
    """Envelope for a handled request. FastAPI encodes Decimal/datetime in data."""
    return {
        "status_code": status_code,
        "message": message,
        "data": data,
        "error": None
    }


def error_response(status_code: int, message: str, error_code: str, error_message: str) -> dict:
    """
    Envelope for a failed request.

    Example:
        >>> error_response(404, "Trade close failed", "POSITION_NOT_FOUND", "Trade not found or already closed")
        {"status_code": 404, "message": "Trade close failed", "data": None,
         "error": {"code": "POSITION_NOT_FOUND", "message": "Trade not found or already closed"}}
    """
    return {
        "status_code": status_code,
        "message": message,
        "data": None,
        "error": ErrorDetail(code=error_code, message=error_message).model_dump()
    }


def error_json_response(status_code: int, message: str, error_code: str, error_message: str) -> JSONResponse:
    """Error envelope as a JSONResponse carrying the same HTTP status."""
    return JSONResponse(
        status_code=status_code,
        content=error_response(status_code, message, error_code, error_message)
    )


def exception_json_response(exc: AppException, message: str) -> JSONResponse:
    """Error envelope built from an AppException's code and status."""
    return error_json_response(exc.status_code, message, exc.code, exc.message)
