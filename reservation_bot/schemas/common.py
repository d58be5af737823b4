from typing import Generic, TypeVar, Optional
from pydantic import BaseModel, Field

T = TypeVar('T')


class ApiResponse(BaseModel, Generic[T]):
    """Common API response envelope"""
    success: bool = Field(description="Whether the request succeeded")
    data: Optional[T] = Field(None, description="Response payload")
    message: Optional[str] = Field(None, description="Human-readable message")
    error_code: Optional[str] = Field(None, description="Error code")


class ErrorResponse(BaseModel):
    """Error body produced by the exception handlers"""
    success: bool = Field(False, description="Always false")
    message: str = Field(description="Error message")
    error_code: str = Field(description="Error code")
    details: dict = Field(default_factory=dict, description="Field, token or decision details")

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "message": "limit: Invalid limit 'xyz': use a count like 5/h or 20/d",
                "error_code": "VALIDATION_ERROR",
                "details": {"token": "xyz"},
            }
        }
    }
