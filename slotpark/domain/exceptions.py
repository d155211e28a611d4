# File: slotpark/domain/exceptions.py
"""
Exceptions for the Parking Facility Engine

All errors raised by the engine are expected business conditions that the
caller can recover from. They are raised to the immediate caller and never
retried internally.

Hierarchy:
    ParkingError
    ├── DuplicateSlotTypeError
    ├── AlreadyParkedError
    ├── NoSlotAvailableError
    ├── VehicleNotFoundError
    ├── NoActiveStayError
    ├── SlotNotFoundError
    ├── IncompatibleSlotError
    ├── StillParkedError
    └── PricingError
        ├── MissingArrivalError
        └── MissingDepartureError
"""

from typing import Any


class ParkingError(Exception):
    """Base exception for parking facility errors"""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.vehicle = context.get("vehicle")
        self.slot = context.get("slot")
        self.slot_type = context.get("slot_type")


# ============================================================================
# CONFIGURATION ERRORS
# ============================================================================

class DuplicateSlotTypeError(ParkingError):
    """Raised when a slot type is configured twice on the same facility"""
    pass


# ============================================================================
# ALLOCATION ERRORS
# ============================================================================

class AlreadyParkedError(ParkingError):
    """Raised when a vehicle enters while already occupying a slot"""
    pass


class NoSlotAvailableError(ParkingError):
    """Raised when no free slot matches the vehicle type"""
    pass


class IncompatibleSlotError(ParkingError):
    """Raised when a slot receives a vehicle of another type"""
    pass


# ============================================================================
# RELEASE ERRORS
# ============================================================================

class VehicleNotFoundError(ParkingError):
    """Raised when leaving by vehicle finds no slot holding it"""
    pass


class NoActiveStayError(ParkingError):
    """Raised when leaving a slot that is already free"""
    pass


class SlotNotFoundError(ParkingError):
    """Raised when a slot handle does not belong to the facility"""
    pass


# ============================================================================
# BILLING ERRORS
# ============================================================================

class StillParkedError(ParkingError):
    """Raised when a fare is requested before the vehicle left its slot"""
    pass


class PricingError(ParkingError):
    """Base exception for pricing strategy failures"""
    pass


class MissingArrivalError(PricingError):
    """Raised when the vehicle record has no arrival time"""
    pass


class MissingDepartureError(PricingError):
    """Raised when the vehicle record has no departure time"""
    pass


def describe(error: ParkingError) -> str:
    """Short machine-friendly code for an engine error, e.g. 'no_slot_available'"""
    name = type(error).__name__
    if name.endswith("Error"):
        name = name[:-len("Error")]
    code = []
    for index, char in enumerate(name):
        if char.isupper() and index:
            code.append("_")
        code.append(char.lower())
    return "".join(code)
