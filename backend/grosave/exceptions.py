"""Custom exceptions for the GroSave backend."""


class GroSaveError(Exception):
    """Base exception for all application errors."""
    status_code = 500

    def __init__(self, message="An internal error occurred", status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv["error"] = self.message
        return rv


class ValidationError(GroSaveError):
    """400-level input problem."""
    status_code = 400


class AuthError(GroSaveError):
    """Missing, invalid or expired credentials."""
    status_code = 401


class NotFoundError(GroSaveError):
    """Exception raised when a resource is not found."""
    status_code = 404

    def __init__(self, message="Not found", payload=None):
        super().__init__(message, payload=payload)


class BusinessRuleError(GroSaveError):
    """Exception raised for business logic violations."""
    status_code = 400


class InsufficientStockError(BusinessRuleError):
    def __init__(self, requested=None, available=None):
        payload = None
        if requested is not None:
            payload = {"requested": requested, "available": available}
        super().__init__("Insufficient stock", payload=payload)


class InsufficientBalanceError(BusinessRuleError):
    def __init__(self, required=None, balance=None):
        payload = None
        if required is not None:
            payload = {"required": required, "balance": balance}
        super().__init__("Insufficient balance", payload=payload)


class SlotCapacityExceededError(BusinessRuleError):
    def __init__(self):
        super().__init__("Slot capacity exceeded")


class InvalidStateError(BusinessRuleError):
    def __init__(self, message="Invalid state"):
        super().__init__(message)
