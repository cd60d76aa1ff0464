"""
Webhook request/response schemas.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class WebhookAck(_CamelResponse):
    """Acknowledgement returned for every authenticated, well-formed event."""

    received: bool = Field(..., description="False when the event handler failed")
    message: str = Field(..., description="Handler outcome")
    request_id: str = Field(..., alias="requestId", description="Request correlation id")


class WebhookErrorResponse(_CamelResponse):
    """Error body for rejected webhook requests."""

    error: str = Field(..., description="Error category")
    reason: Optional[str] = Field(None, description="Signature failure reason")
    details: Optional[list[str]] = Field(None, description="Payload validation errors")
    request_id: str = Field(..., alias="requestId", description="Request correlation id")

    def to_content(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
