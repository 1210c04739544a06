"""
Domain exceptions raised by the query and service layers.

The API layer translates these into HTTP responses; ``status_code`` is the
code it uses.
"""


class DashboardError(Exception):
    """Base class for request errors the client can act on."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RequestValidationFailed(DashboardError):
    """Missing or inconsistent request parameters."""


class InvalidIdentifierError(DashboardError):
    """A table or column name contains characters outside [a-zA-Z0-9_]."""


class UnknownTableError(DashboardError):
    status_code = 404

    def __init__(self, table: str):
        super().__init__(f"Table not found: {table}")
        self.table = table


class UnknownColumnError(DashboardError):
    status_code = 404

    def __init__(self, table: str, column: str):
        super().__init__(f"Column not found: {table}.{column}")
        self.table = table
        self.column = column
