"""Custom exceptions for job dispatch and booking management."""


class ServiceError(Exception):
    """Base class for domain failures surfaced to API callers."""
    error_code = "service_error"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class InvalidAmountError(ServiceError):
    """Raised when a booking total is missing, negative or not a number."""
    error_code = "invalid_amount"
    status_code = 400
    default_message = "Booking amount is missing or invalid"


class InvalidCommissionRateError(ServiceError):
    """Raised when an admin submits a commission outside 0-100."""
    error_code = "invalid_commission_rate"
    status_code = 400
    default_message = "Commission rate must be between 0 and 100"


class InvalidRatingError(ServiceError):
    error_code = "invalid_rating"
    status_code = 400
    default_message = "Rating must be between 1 and 5"


class AlreadyRatedError(ServiceError):
    error_code = "already_rated"
    status_code = 400
    default_message = "This booking has already been rated"


class OfferNotFoundError(ServiceError):
    """Raised when a job offer is unknown, not yours, or already answered."""
    error_code = "offer_not_found"
    status_code = 404
    default_message = "Job offer not found or already processed"


class OfferExpiredError(ServiceError):
    """Raised when a job offer is answered after its window closed."""
    error_code = "offer_expired"
    status_code = 400
    default_message = "Job offer has expired"

    def __init__(self, message=None, offer_id=None):
        super().__init__(message)
        self.offer_id = offer_id


class DuplicatePendingOfferError(ServiceError):
    """Raised when a booking already has a live offer."""
    error_code = "duplicate_pending_offer"
    status_code = 409
    default_message = "This booking already has a pending job offer"


class DispatchAlreadyInProgressError(ServiceError):
    error_code = "dispatch_in_progress"
    status_code = 409
    default_message = "This booking is already being offered to a technician"


class BookingNotFoundError(ServiceError):
    error_code = "booking_not_found"
    status_code = 404
    default_message = "Booking not found"


class TechnicianNotFoundError(ServiceError):
    error_code = "technician_not_found"
    status_code = 404
    default_message = "Technician profile not found"


class NotAssignedToYouError(ServiceError):
    """Raised when a technician acts on a booking assigned to someone else."""
    error_code = "not_assigned_to_you"
    status_code = 404
    default_message = "Booking not found or not assigned to you"


class InvalidStateError(ServiceError):
    """Raised when a booking is not in a state that allows the operation."""
    error_code = "invalid_state"
    status_code = 409
    default_message = "Booking is not in a valid state for this action"


class TechnicianUnavailableError(ServiceError):
    error_code = "technician_unavailable"
    status_code = 409
    default_message = "Technician is not available to take this job"


class NotActiveError(ServiceError):
    """Raised when a technician who is not active tries to go on/off duty."""
    error_code = "not_active"
    status_code = 403
    default_message = "Your account is not active. Please contact admin."


class TechnicianNotQualifiedError(ServiceError):
    """Raised when an admin assigns a booking outside the technician's specializations."""
    error_code = "technician_not_qualified"
    status_code = 400
    default_message = "Technician does not handle this service type"


class InvalidStatusFilterError(ServiceError):
    error_code = "invalid_status_filter"
    status_code = 400
    default_message = "Unknown booking status filter"
