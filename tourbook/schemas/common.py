"""Common Pydantic schemas."""
from typing import Any, Dict, Literal, Optional
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    
    model_config = {
        "from_attributes": True,
        "validate_assignment": True,
        "arbitrary_types_allowed": True,
    }


class StatusResponse(BaseSchema):
    """Generic success response."""
    
    status: Literal["success"] = Field("success", description="Response status")
    message: Optional[str] = Field(None, description="Human readable message")


class ErrorResponse(BaseSchema):
    """Error response schema."""
    
    status: Literal["fail", "error"] = Field(..., description="fail for client errors, error for server errors")
    message: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(None, description="Error code")
    details: Dict[str, Any] = Field(default_factory=dict, description="Error details")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class HealthResponse(BaseSchema):
    """Health check response."""
    
    status: str = Field(..., description="Overall health status")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = Field(..., description="Application version")
    services: Dict[str, str] = Field(
        default_factory=dict,
        description="Service health statuses"
    )
