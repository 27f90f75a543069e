"""
Error taxonomy for the storefront.

Mutating operations raise these to their caller; read paths that degrade
to empty results catch ``StoreError`` themselves.
"""


class StorefrontError(Exception):
    status_code = 500
    default_message = "Storefront error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(StorefrontError):
    status_code = 404
    default_message = "Not found"


class InvalidStateError(StorefrontError):
    status_code = 409
    default_message = "Invalid state"


class ValidationError(StorefrontError):
    status_code = 422
    default_message = "Invalid input"


class StoreError(StorefrontError):
    status_code = 503
    default_message = "Store unavailable"
