# File: slotpark/__init__.py
"""
SlotPark - concurrency-safe parking slot allocation engine

A ParkingFacility owns typed slots, assigns vehicles to free slots of their
type and bills completed stays through a pluggable PricingStrategy.
"""

from .domain.models import VehicleType, StayState, Vehicle, ParkingSlot
from .domain.aggregates import ParkingFacility
from .domain.strategies import (
    PricingStrategy, FlatRateWithExemptionPricingStrategy,
    PerHourStartedPricingStrategy, PricingStrategyFactory
)
from .domain.exceptions import (
    ParkingError, DuplicateSlotTypeError, AlreadyParkedError,
    NoSlotAvailableError, VehicleNotFoundError, NoActiveStayError,
    SlotNotFoundError, IncompatibleSlotError, StillParkedError,
    PricingError, MissingArrivalError, MissingDepartureError
)

__version__ = "1.0.0"

__all__ = [
    "VehicleType", "StayState", "Vehicle", "ParkingSlot", "ParkingFacility",
    "PricingStrategy", "FlatRateWithExemptionPricingStrategy",
    "PerHourStartedPricingStrategy", "PricingStrategyFactory",
    "ParkingError", "DuplicateSlotTypeError", "AlreadyParkedError",
    "NoSlotAvailableError", "VehicleNotFoundError", "NoActiveStayError",
    "SlotNotFoundError", "IncompatibleSlotError", "StillParkedError",
    "PricingError", "MissingArrivalError", "MissingDepartureError",
]
