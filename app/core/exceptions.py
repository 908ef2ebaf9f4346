"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class ServiceUnavailableException(AppException):
    """Transient storage failure; the operation may be retried."""

    def __init__(self, message: str = "Service temporarily unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class PaymentGatewayError(AppException):
    """Payment processor call failed."""

    def __init__(self, message: str = "Payment gateway error"):
        """Initialize with 502 status code."""
        super().__init__(message, status_code=502)


# Booking


class DoctorNotFoundException(NotFoundException):
    """Doctor id does not resolve to an active doctor account."""

    def __init__(self, message: str = "Doctor not found"):
        super().__init__(message)


class ProfileIncompleteException(NotFoundException):
    """Doctor has no published profile."""

    def __init__(self, message: str = "Doctor profile is incomplete"):
        super().__init__(message)


class NotApprovedException(ForbiddenException):
    """Doctor profile has not passed administrator verification."""

    def __init__(self, message: str = "Doctor is not approved for consultations"):
        super().__init__(message)


class InvalidDateException(ValidationException):
    """Requested appointment time is malformed or not in the future."""

    def __init__(self, message: str = "Appointment time must be in the future"):
        super().__init__(message)


class SlotUnavailableException(ValidationException):
    """Requested time is outside the doctor's open hours."""

    def __init__(self, message: str = "Doctor is not available at the requested time"):
        super().__init__(message)


class SlotTakenException(ConflictException):
    """A live appointment already occupies an overlapping interval."""

    def __init__(self, message: str = "Requested time slot is already booked"):
        super().__init__(message)


# Lifecycle


class InvalidTransitionException(ConflictException):
    """Requested status change is not permitted from the current status."""

    def __init__(self, current_status: str, target_status: str, message: str | None = None):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            message or f"Cannot move appointment from '{current_status}' to '{target_status}'"
        )


# Payments


class AmountMismatchException(ValidationException):
    """Caller-supplied amount disagrees with the consultation fee."""

    def __init__(self, message: str = "Payment amount does not match the consultation fee"):
        super().__init__(message)


class InvalidSignatureException(BadRequestException):
    """Payment confirmation signature could not be verified."""

    def __init__(self, message: str = "Invalid payment signature"):
        super().__init__(message)
