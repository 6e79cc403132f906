"""
Error types

Every error carries the HTTP status it maps to. main.py registers one
handler for ShopError that renders {"detail": ...} with that status.
"""


class ShopError(Exception):
    status_code = 500
    detail = "Internal error"

    def __init__(self, detail=None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class AuthenticationError(ShopError):
    status_code = 401
    detail = "Not authenticated"


class ForbiddenError(ShopError):
    status_code = 403
    detail = "Forbidden"


class ValidationError(ShopError):
    status_code = 400
    detail = "Invalid request"


class EmptyCartError(ShopError):
    status_code = 400
    detail = "Empty cart"


class NotFoundError(ShopError):
    status_code = 404
    detail = "Not found"


class PersistenceError(ShopError):
    status_code = 500
    detail = "Storage failure"


class ServiceUnavailableError(ShopError):
    status_code = 503
    detail = "Service unavailable"
