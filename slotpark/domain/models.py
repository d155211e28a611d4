# File: slotpark/domain/models.py
"""
Domain Models for the Parking Facility Engine

This module contains:
1. Enums: vehicle types and stay states
2. Entities: Vehicle and ParkingSlot
3. Domain Events: records of vehicles parking and leaving

Vehicles are created by the caller and only ever mutated by the facility
that parks them. A slot holds at most one vehicle of its own type.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from datetime import datetime, timedelta
from enum import Enum
import uuid

from .exceptions import IncompatibleSlotError


# ============================================================================
# ENUMS FOR DOMAIN TYPES
# ============================================================================

class VehicleType(Enum):
    """
    Enumeration of vehicle types
    A vehicle may only park on a slot of the same type
    """
    STANDARD = "standard"            # Gasoline-powered car
    ELECTRIC_LOW = "electric_low"    # Electric car, 20kW power supply
    ELECTRIC_HIGH = "electric_high"  # Electric car, 50kW power supply

    @property
    def is_electric(self) -> bool:
        """Check if vehicle type needs a charging slot"""
        return self.value.startswith("electric_")

    @classmethod
    def parse(cls, value: Any) -> "VehicleType":
        """Accept an enum member, its value or its name (case-insensitive)"""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value, member.name.lower()):
                return member
        raise ValueError(f"Unknown vehicle type: {value!r}")

    def __str__(self) -> str:
        """Human-readable string representation"""
        names = {
            VehicleType.STANDARD: "Standard",
            VehicleType.ELECTRIC_LOW: "Electric 20kW",
            VehicleType.ELECTRIC_HIGH: "Electric 50kW",
        }
        return names.get(self, self.value.replace("_", " ").title())


class StayState(Enum):
    """Lifecycle of a vehicle record, derived from its timestamps"""
    NEVER_PARKED = "never_parked"
    PARKED = "parked"
    DEPARTED = "departed"


# ============================================================================
# DOMAIN ENTITIES
# ============================================================================

class Vehicle:
    """
    Entity: a vehicle and the timestamps of its current stay

    Two vehicles are equal when plate and type match. The timestamps do not
    take part in equality, so a record stays identifiable while it moves
    through the NEVER_PARKED -> PARKED -> DEPARTED lifecycle.
    """

    def __init__(self, plate: str, vehicle_type: VehicleType):
        if not isinstance(vehicle_type, VehicleType):
            raise TypeError(f"vehicle_type must be a VehicleType, got {type(vehicle_type).__name__}")
        if plate is None or not str(plate).strip():
            raise ValueError("License plate cannot be empty")

        self._plate = str(plate).strip()
        self._vehicle_type = vehicle_type
        self._arrived_at: Optional[datetime] = None
        self._departed_at: Optional[datetime] = None

    @property
    def plate(self) -> str:
        return self._plate

    @property
    def vehicle_type(self) -> VehicleType:
        return self._vehicle_type

    @property
    def arrived_at(self) -> Optional[datetime]:
        """When the vehicle took its slot"""
        return self._arrived_at

    @property
    def departed_at(self) -> Optional[datetime]:
        """When the vehicle left its slot"""
        return self._departed_at

    @property
    def state(self) -> StayState:
        if self._arrived_at is None:
            return StayState.NEVER_PARKED
        if self._departed_at is None:
            return StayState.PARKED
        return StayState.DEPARTED

    @property
    def stay_duration(self) -> Optional[timedelta]:
        """Duration of the completed stay, None until the vehicle departed"""
        if self.state is not StayState.DEPARTED:
            return None
        return self._departed_at - self._arrived_at

    def _mark_arrived(self, at: datetime) -> None:
        """Start a new stay; any previous departure is forgotten"""
        self._arrived_at = at
        self._departed_at = None

    def _mark_departed(self, at: datetime) -> None:
        if self._arrived_at is None:
            raise AssertionError(f"{self!r} departed without having arrived")
        self._departed_at = at

    def _snapshot(self) -> "Vehicle":
        """Detached copy of the record; later stays do not change it"""
        copy = Vehicle(self._plate, self._vehicle_type)
        copy._arrived_at = self._arrived_at
        copy._departed_at = self._departed_at
        return copy

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "plate": self._plate,
            "vehicle_type": self._vehicle_type.value,
            "state": self.state.value,
            "arrived_at": self._arrived_at.isoformat() if self._arrived_at else None,
            "departed_at": self._departed_at.isoformat() if self._departed_at else None,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Vehicle):
            return NotImplemented
        return self._plate == other._plate and self._vehicle_type == other._vehicle_type

    def __hash__(self) -> int:
        return hash((self._plate, self._vehicle_type))

    def __repr__(self) -> str:
        return (
            f"Vehicle(plate={self._plate!r}, type={self._vehicle_type.value}, "
            f"arrived_at={self._arrived_at}, departed_at={self._departed_at})"
        )

    def __str__(self) -> str:
        return f"{self._plate} ({self._vehicle_type})"


class ParkingSlot:
    """
    Entity: one unit of typed parking capacity

    A slot is either free or holds exactly one vehicle of its own type.
    Slots are created by their facility and never destroyed individually.
    """

    def __init__(self, number: int, slot_type: VehicleType, facility_id: Optional[str] = None):
        if number <= 0:
            raise ValueError("Slot number must be positive")

        self._id = str(uuid.uuid4())
        self._number = number
        self._slot_type = slot_type
        self._facility_id = facility_id
        self._vehicle: Optional[Vehicle] = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def number(self) -> int:
        return self._number

    @property
    def slot_type(self) -> VehicleType:
        return self._slot_type

    @property
    def facility_id(self) -> Optional[str]:
        return self._facility_id

    @property
    def vehicle(self) -> Optional[Vehicle]:
        """Vehicle currently parked on the slot, if any"""
        return self._vehicle

    def is_free(self) -> bool:
        return self._vehicle is None

    def is_free_for(self, slot_type: VehicleType) -> bool:
        """Check the slot is free and of the given type"""
        return self._slot_type == slot_type and self.is_free()

    def holds(self, vehicle: Vehicle) -> bool:
        return self._vehicle is not None and self._vehicle == vehicle

    def occupy(self, vehicle: Vehicle, at: datetime) -> None:
        """
        Park a vehicle on this slot and stamp its arrival time
        Raises: IncompatibleSlotError if the vehicle type differs from the slot type
        """
        if vehicle.vehicle_type != self._slot_type:
            raise IncompatibleSlotError(
                f"Vehicle {vehicle} cannot park on slot {self._number}, "
                f"available only for {self._slot_type}",
                vehicle=vehicle, slot=self, slot_type=self._slot_type
            )
        if self._vehicle is not None:
            raise AssertionError(f"Slot {self._number} is already occupied by {self._vehicle}")

        self._vehicle = vehicle
        vehicle._mark_arrived(at)

    def release(self, at: datetime) -> Vehicle:
        """
        Free the slot, stamp the departure time and return the vehicle that left
        The caller checks the slot is occupied first
        """
        vehicle = self._vehicle
        if vehicle is None:
            raise AssertionError(f"Slot {self._number} has no vehicle to release")

        vehicle._mark_departed(at)
        self._vehicle = None
        return vehicle

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "id": self._id,
            "number": self._number,
            "slot_type": self._slot_type.value,
            "is_free": self.is_free(),
            "vehicle": self._vehicle.plate if self._vehicle else None,
        }

    def __repr__(self) -> str:
        return f"ParkingSlot(number={self._number}, type={self._slot_type.value}, vehicle={self._vehicle})"

    def __str__(self) -> str:
        status = "Occupied" if self._vehicle else "Free"
        return f"Slot {self._number} - {self._slot_type} - {status}"


# ============================================================================
# DOMAIN EVENTS
# ============================================================================

@dataclass
class DomainEvent(ABC):
    """
    Base class for all domain events
    Events represent something that happened in the facility
    The facility passes its own clock reading as timestamp
    """
    facility_id: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()), init=False)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    @abstractmethod
    def event_type(self) -> str:
        """Dotted event name, e.g. 'vehicle.parked'"""
        pass

    @abstractmethod
    def payload(self) -> Dict[str, Any]:
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization"""
        return {
            "event_type": self.event_type,
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "data": self.payload(),
        }

    def __str__(self) -> str:
        return f"{self.__class__.__name__} at {self.timestamp}"


@dataclass
class VehicleParkedEvent(DomainEvent):
    """Event raised when a vehicle takes a slot"""
    slot_number: int = 0
    plate: str = ""
    vehicle_type: VehicleType = VehicleType.STANDARD
    arrived_at: Optional[datetime] = None

    @property
    def event_type(self) -> str:
        return "vehicle.parked"

    def payload(self) -> Dict[str, Any]:
        return {
            "facility_id": self.facility_id,
            "slot_number": self.slot_number,
            "plate": self.plate,
            "vehicle_type": self.vehicle_type.value,
            "arrived_at": self.arrived_at.isoformat() if self.arrived_at else None,
        }


@dataclass
class VehicleLeftEvent(DomainEvent):
    """Event raised when a vehicle leaves its slot"""
    slot_number: int = 0
    plate: str = ""
    vehicle_type: VehicleType = VehicleType.STANDARD
    arrived_at: Optional[datetime] = None
    departed_at: Optional[datetime] = None

    @property
    def event_type(self) -> str:
        return "vehicle.left"

    @property
    def duration_minutes(self) -> Optional[float]:
        if self.arrived_at is None or self.departed_at is None:
            return None
        return (self.departed_at - self.arrived_at).total_seconds() / 60

    def payload(self) -> Dict[str, Any]:
        return {
            "facility_id": self.facility_id,
            "slot_number": self.slot_number,
            "plate": self.plate,
            "vehicle_type": self.vehicle_type.value,
            "arrived_at": self.arrived_at.isoformat() if self.arrived_at else None,
            "departed_at": self.departed_at.isoformat() if self.departed_at else None,
            "duration_minutes": self.duration_minutes,
        }
