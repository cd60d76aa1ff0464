"""
API request/response schemas.
"""

from .webhook import WebhookAck, WebhookErrorResponse

__all__ = ["WebhookAck", "WebhookErrorResponse"]
