"""Common Pydantic schemas shared across the API."""

from typing import Any, Generic, TypeVar, Optional
from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")


class CamelModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True)


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope."""

    success: bool = Field(default=True)
    message: Optional[str] = Field(None, description="Human-readable outcome")
    data: T


class ErrorDetail(BaseModel):
    code: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Human-readable error message")
    path: str
    method: str
    details: Optional[Any] = None
    request_id: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error envelope produced by the error handlers."""

    error: ErrorDetail
