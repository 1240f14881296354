"""
Error taxonomy for the data-quality services.

Every error carries the HTTP status the API layer maps it to, so routes never
translate exceptions by hand.
"""


class QualityError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(QualityError):
    """Bad identifiers, inverted bounds, empty update sets, bad method params."""
    status_code = 400


class InvalidStatusTransition(ValidationError):
    pass


class NotFoundError(QualityError):
    status_code = 404

    def __init__(self, resource: str, resource_id):
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class MethodUnavailableError(QualityError):
    status_code = 409

    def __init__(self, method_id: str, reason: str = "method is not available"):
        super().__init__(f"{method_id}: {reason}")
        self.method_id = method_id


class DataError(QualityError):
    """The version's table cannot be used (missing, empty, malformed)."""
    status_code = 422


class EmptyDataError(DataError):
    pass


class ColumnNotFoundError(DataError):
    def __init__(self, columns: list[str]):
        super().__init__(f"Columns not found in data: {', '.join(columns)}")
        self.columns = columns


class ConfigurationError(DataError):
    """No target column has a usable threshold."""
