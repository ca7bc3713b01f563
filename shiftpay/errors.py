"""Error taxonomy for the escrow and settlement services.

Every failure here is raised before the first write, so catching one of
these means no state was mutated. Already-settled shifts and partial
writes are not errors: they come back as successful results.
"""

# =============================================================================
# ERRORS
# =============================================================================


class ShiftPayError(Exception):
    """Base for all shiftpay errors."""

    pass


class ValidationError(ShiftPayError):
    """Raised when input is rejected, e.g. non-positive hours or rate."""

    pass


class MissingRateError(ValidationError):
    """Raised when a shift has no hourly rate to settle against."""

    pass


class NotFoundError(ShiftPayError):
    """Raised when a referenced shift, timesheet or payment does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.capitalize()} not found: {record_id}")


class IncompleteStateError(ShiftPayError):
    """Raised when a record is not yet settleable (e.g. no clock-out)."""

    pass


class UnauthenticatedError(ShiftPayError):
    """Raised by identity resolvers when there is no valid caller."""

    pass


class ForbiddenError(ShiftPayError):
    """Raised when the caller is authenticated but not allowed to act."""

    pass
