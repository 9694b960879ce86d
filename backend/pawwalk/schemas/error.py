from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body returned for every typed error."""

    success: bool = Field(False, description="Always false")
    status: int = Field(..., description="HTTP status code")
    code: str = Field(..., description="Error code, e.g. FULL or NOT_FOUND")
    reason: str = Field(..., description="Human readable reason")
    timeStamp: str = Field(..., description="Response time (ISO 8601)")
    path: str = Field(..., description="Request path")
