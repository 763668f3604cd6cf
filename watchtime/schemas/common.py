"""
Error envelope schemas, used in route `responses=` for the OpenAPI docs.

Every non-2xx body is `{code, message, details?}`; request validation
failures carry `details.errors`, one entry per offending field.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class ErrorResponse(BaseModel):
    model_config = ConfigDict(json_schema_extra={
        "example": {
            "code": "SESSION_NOT_FOUND",
            "message": "Stream session 42 does not exist.",
            "details": {"session_id": 42},
        }
    })

    code: str
    message: str
    details: Optional[dict[str, Any]] = None


class FieldError(BaseModel):
    field: str
    message: str
    type: str


class ValidationErrors(BaseModel):
    errors: list[FieldError]


class ValidationErrorResponse(BaseModel):
    model_config = ConfigDict(json_schema_extra={
        "example": {
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": [
                {"field": "status", "message": "Input should be 'open' or 'closed'", "type": "literal_error"},
            ]},
        }
    })

    code: str
    message: str
    details: ValidationErrors
