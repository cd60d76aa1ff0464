"""
Webhook error taxonomy.

HTTP-level errors (config, signature, payload) are raised from the request
handler and mapped to JSON responses by the handlers registered in main.py.
Store and plan lookup errors stay inside the synchronizer and surface as a
failed result in a 200 acknowledgement.
"""


class WebhookError(Exception):
    """Base exception for webhook processing errors."""

    pass


class ConfigError(WebhookError):
    """Raised when required configuration is missing or invalid."""

    def __init__(self, missing: list[str], environment: str = ""):
        self.missing = missing
        self.environment = environment
        super().__init__(f"Missing required configuration: {', '.join(missing)}")


class SignatureError(WebhookError):
    """Raised when the Paddle-Signature check rejects a request."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Signature verification failed: {reason}")


class PayloadValidationError(WebhookError):
    """Raised when the request body is not a well-formed webhook event."""

    def __init__(self, error: str, details: list[str] | None = None):
        self.error = error
        self.details = details or []
        super().__init__(error if not self.details else f"{error}: {'; '.join(self.details)}")


class PlanLookupError(WebhookError):
    """Raised when no subscription plan matches a Paddle product id."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Subscription plan not found for product ID: {product_id}")


class StoreError(WebhookError):
    """Raised when a call against the data store fails."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(message)
