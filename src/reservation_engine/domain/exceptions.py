

class ReservationEngineError(Exception):
    """
    Base exception for all domain-level errors
    inside the Reservation & Settlement Engine.

    Every subclass carries a stable ``kind`` so callers can tell
    retryable conflicts apart from permanent failures.
    """

    kind = "RESERVATION_ENGINE_ERROR"


class ValidationError(ReservationEngineError):
    """Raised when a request carries invalid input (quantity, points...)."""

    kind = "VALIDATION_ERROR"


class InvalidTicketError(ValidationError):
    """Raised when a ticket cannot be checked in."""


class NotFoundError(ReservationEngineError):
    """Raised when a referenced resource does not exist."""

    kind = "NOT_FOUND"


class PermissionDeniedError(ReservationEngineError):
    """Raised when the actor does not own the resource."""

    kind = "PERMISSION_DENIED"


class ConflictError(ReservationEngineError):
    """Raised when the current state of a shared resource blocks the request."""

    kind = "CONFLICT"


class InsufficientInventoryError(ConflictError):
    """Raised when no seats are available."""

    kind = "INSUFFICIENT_INVENTORY"


class VoucherInvalidError(ConflictError):
    """Raised when a voucher is outside its window or exhausted."""

    kind = "VOUCHER_INVALID"


class CouponInvalidError(ConflictError):
    """Raised when a coupon is already used or expired."""

    kind = "COUPON_INVALID"


class InvalidStateTransitionError(ReservationEngineError):
    """
    Raised when an illegal transaction state transition is attempted.
    """

    kind = "INVALID_STATE_TRANSITION"

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class ExpiredError(ReservationEngineError):
    """Raised when a payment deadline has already passed."""

    kind = "EXPIRED"
