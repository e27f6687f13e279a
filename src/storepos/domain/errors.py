class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class StoreNotFoundError(NotFoundError):
    """No store could be determined for a sale."""


class InsufficientStockError(AppError):
    pass


class AuthorizationError(AppError):
    pass


class BackendError(AppError):
    """A call to the storage backend failed."""
