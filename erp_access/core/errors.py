"""
Error taxonomy for the access engine.

Every error carries an internal ``detail`` for logs and a fixed public message
for clients. Handlers must only ever send ``public_message`` over the wire.
"""


class AccessError(Exception):
    """Base class for all engine errors."""

    public_message = "Request could not be processed"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.public_message)
        self.detail = detail


class AuthorizationError(AccessError):
    """Organization mismatch, missing context, or capability denied."""

    public_message = "Not permitted"


class ValidationError(AccessError):
    """Unknown resource/action, or a malformed role or grant."""

    public_message = "Invalid request"


class ConfigurationError(AccessError):
    """Administrative-name set or financial-field set missing at startup."""

    public_message = "Service misconfigured"
