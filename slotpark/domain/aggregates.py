# File: slotpark/domain/aggregates.py
"""
Aggregate Root for the Parking Facility Engine

ParkingFacility is the slot allocation engine. It owns every slot, matches
vehicles to free slots of their type, keeps one active stay per vehicle and
delegates fares to its pricing strategy.

Key Concepts:
- All modifications go through aggregate root methods
- One facility-wide lock serializes configure, enter and leave, so the
  duplicate-vehicle check and the slot commit form a single critical section
- Queries take the same lock and never observe a slot mid-mutation
- Domain events are recorded for every stay change and drained by the caller
"""

from typing import List, Optional, Dict, Any, Callable, Tuple
from datetime import datetime
from decimal import Decimal
import threading
import logging
import uuid

from .models import (
    Vehicle, ParkingSlot, VehicleType,
    DomainEvent, VehicleParkedEvent, VehicleLeftEvent
)
from .exceptions import (
    DuplicateSlotTypeError, AlreadyParkedError, NoSlotAvailableError,
    VehicleNotFoundError, NoActiveStayError, SlotNotFoundError,
    StillParkedError, IncompatibleSlotError
)
from .strategies import PricingStrategy


Clock = Callable[[], datetime]


class ParkingFacility:
    """
    Aggregate Root: a parking facility with typed slots and a pricing strategy

    Usage:
        facility = (ParkingFacility(PerHourStartedPricingStrategy(Decimal('2')))
                    .configure(VehicleType.STANDARD, 3)
                    .configure(VehicleType.ELECTRIC_LOW, 6))
        slot = facility.enter(vehicle)
        facility.leave_by_slot(slot)
        amount = facility.fare(vehicle)
    """

    def __init__(
        self,
        pricing_strategy: PricingStrategy,
        name: str = "Parking",
        clock: Optional[Clock] = None,
        id: Optional[str] = None
    ):
        if not isinstance(pricing_strategy, PricingStrategy):
            raise TypeError("pricing_strategy must implement PricingStrategy")

        self._id = id or str(uuid.uuid4())
        self.name = name
        self._pricing_strategy = pricing_strategy
        self._clock: Clock = clock or datetime.now

        # Internal state, guarded by _lock
        self._slots: List[ParkingSlot] = []
        self._changes: List[DomainEvent] = []
        self._lock = threading.RLock()

        self._logger = logging.getLogger(self.__class__.__name__)
        self._logger.info(f"Created ParkingFacility: {self.name} (ID: {self._id}) with {pricing_strategy}")

    @property
    def id(self) -> str:
        return self._id

    @property
    def pricing_strategy(self) -> PricingStrategy:
        return self._pricing_strategy

    # ========================================================================
    # CONFIGURATION
    # ========================================================================

    def configure(self, slot_type: VehicleType, count: int) -> "ParkingFacility":
        """
        Add `count` free slots of `slot_type`
        Returns: self, to chain calls
        Raises: DuplicateSlotTypeError if the type is already configured
        """
        if not isinstance(slot_type, VehicleType):
            raise TypeError(f"slot_type must be a VehicleType, got {type(slot_type).__name__}")
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise ValueError(f"Slot count must be a positive integer, got {count!r}")

        with self._lock:
            if any(slot.slot_type == slot_type for slot in self._slots):
                self._logger.warning(f"Rejected configuration: {slot_type} slots already present")
                raise DuplicateSlotTypeError(
                    f"This facility already contains {slot_type} slots",
                    slot_type=slot_type
                )

            next_number = self._slots[-1].number + 1 if self._slots else 1
            for number in range(next_number, next_number + count):
                self._slots.append(ParkingSlot(number, slot_type, facility_id=self._id))

        self._logger.info(f"Configured {count} {slot_type} slot(s) on {self.name}")
        return self

    # ========================================================================
    # PUBLIC BUSINESS METHODS
    # ========================================================================

    def enter(self, vehicle: Vehicle) -> ParkingSlot:
        """
        Park a vehicle on the first free slot of its type
        Returns: the occupied slot
        Raises: AlreadyParkedError, NoSlotAvailableError
        """
        with self._lock:
            if self._find_slot_holding(vehicle) is not None:
                self._logger.warning(f"Vehicle {vehicle} is already parked")
                raise AlreadyParkedError(
                    f"Vehicle {vehicle} is already parked in the facility",
                    vehicle=vehicle
                )

            slot = self._find_free_slot(vehicle.vehicle_type)
            if slot is None:
                self._logger.warning(f"No free {vehicle.vehicle_type} slot for {vehicle}")
                raise NoSlotAvailableError(
                    f"No free slot found for {vehicle}",
                    vehicle=vehicle, slot_type=vehicle.vehicle_type
                )

            try:
                slot.occupy(vehicle, self._clock())
            except IncompatibleSlotError as e:
                # Slots are filtered by type above
                raise AssertionError(f"Allocated an incompatible slot: {e}") from e

            self._add_domain_event(VehicleParkedEvent(
                facility_id=self._id,
                slot_number=slot.number,
                plate=vehicle.plate,
                vehicle_type=vehicle.vehicle_type,
                arrived_at=vehicle.arrived_at,
                timestamp=vehicle.arrived_at
            ))

        self._logger.info(f"Vehicle {vehicle} parked in slot {slot.number}")
        return slot

    def leave_by_vehicle(self, vehicle: Vehicle) -> Vehicle:
        """
        Free the slot the vehicle is parked on
        Returns: the departed vehicle record
        Raises: VehicleNotFoundError, NoActiveStayError
        """
        with self._lock:
            return self._release(self._slot_of(vehicle))

    def leave_by_slot(self, slot: ParkingSlot) -> Vehicle:
        """
        Free a slot and stamp the departure time of its vehicle
        Returns: the departed vehicle record
        Raises: SlotNotFoundError, NoActiveStayError
        """
        with self._lock:
            return self._release(slot)

    def checkout_by_vehicle(self, vehicle: Vehicle) -> Tuple[int, Vehicle]:
        """
        Same as leave_by_vehicle, for callers that bill right away
        Returns: (released slot number, detached record of the completed stay)
        """
        with self._lock:
            slot = self._slot_of(vehicle)
            return slot.number, self._release(slot)._snapshot()

    def checkout_by_slot(self, slot: ParkingSlot) -> Tuple[int, Vehicle]:
        """Same as leave_by_slot, returning (slot number, detached stay record)"""
        with self._lock:
            return slot.number, self._release(slot)._snapshot()

    def fare(self, vehicle: Vehicle) -> Decimal:
        """
        Compute the fare of a vehicle that left its slot
        Raises: StillParkedError, MissingArrivalError, MissingDepartureError
        """
        with self._lock:
            if self._find_slot_holding(vehicle) is not None:
                self._logger.warning(f"Fare requested for {vehicle} while still parked")
                raise StillParkedError(
                    "Vehicles must leave their parking slot before paying",
                    vehicle=vehicle
                )
            # A re-entry after the lock is released must not reach the strategy
            stay = vehicle._snapshot()

        return self.price(stay)

    def price(self, stay: Vehicle) -> Decimal:
        """
        Run the pricing strategy on a stay record
        Expects a record nobody mutates, such as one returned by checkout_*
        Raises: MissingArrivalError, MissingDepartureError
        """
        # Strategies are caller-supplied: never run them under the lock
        amount = self._pricing_strategy.compute_fare(stay)
        self._logger.info(f"Fare for {stay}: {amount}")
        return amount

    # ========================================================================
    # QUERY METHODS (Read-only)
    # ========================================================================

    def has_free_slot(self, slot_type: VehicleType) -> bool:
        with self._lock:
            return self._find_free_slot(slot_type) is not None

    def count_free_slots(self, slot_type: VehicleType) -> int:
        with self._lock:
            return sum(1 for slot in self._slots if slot.is_free_for(slot_type))

    def find_slot(self, vehicle: Vehicle) -> Optional[ParkingSlot]:
        """Get the slot the vehicle is parked on, if any"""
        with self._lock:
            return self._find_slot_holding(vehicle)

    def is_parked(self, vehicle: Vehicle) -> bool:
        return self.find_slot(vehicle) is not None

    def get_slots_by_type(self, slot_type: VehicleType) -> List[ParkingSlot]:
        """Get all slots of specific type"""
        with self._lock:
            return [slot for slot in self._slots if slot.slot_type == slot_type]

    @property
    def slot_types(self) -> List[VehicleType]:
        """Configured slot types, in configuration order"""
        with self._lock:
            types: List[VehicleType] = []
            for slot in self._slots:
                if slot.slot_type not in types:
                    types.append(slot.slot_type)
            return types

    @property
    def total_slots(self) -> int:
        with self._lock:
            return len(self._slots)

    @property
    def occupied_slots(self) -> int:
        with self._lock:
            return sum(1 for slot in self._slots if not slot.is_free())

    @property
    def available_slots(self) -> int:
        with self._lock:
            return sum(1 for slot in self._slots if slot.is_free())

    def get_occupancy_rate(self) -> float:
        """Calculate occupancy rate (0-100)"""
        with self._lock:
            total = len(self._slots)
            if total == 0:
                return 0.0
            occupied = sum(1 for slot in self._slots if not slot.is_free())
            return (occupied / total) * 100.0

    def get_status_report(self) -> Dict[str, Any]:
        """Consistent snapshot of the facility occupancy"""
        with self._lock:
            by_type: Dict[str, Dict[str, int]] = {}
            for slot in self._slots:
                counts = by_type.setdefault(
                    slot.slot_type.value, {"total": 0, "occupied": 0, "free": 0}
                )
                counts["total"] += 1
                counts["free" if slot.is_free() else "occupied"] += 1

            total = len(self._slots)
            occupied = sum(c["occupied"] for c in by_type.values())
            return {
                "facility_id": self._id,
                "name": self.name,
                "total_slots": total,
                "occupied_slots": occupied,
                "available_slots": total - occupied,
                "occupancy_rate": (occupied / total) * 100.0 if total else 0.0,
                "by_slot_type": by_type,
                "pricing": self._pricing_strategy.describe(),
            }

    # ========================================================================
    # DOMAIN EVENTS
    # ========================================================================

    def _add_domain_event(self, event: DomainEvent) -> None:
        self._changes.append(event)
        self._logger.debug(f"Added domain event: {event.__class__.__name__}")

    def clear_events(self) -> List[DomainEvent]:
        """Clear and return all pending domain events"""
        with self._lock:
            events = self._changes.copy()
            self._changes.clear()
            return events

    @property
    def has_changes(self) -> bool:
        with self._lock:
            return len(self._changes) > 0

    # ========================================================================
    # INTERNAL HELPER METHODS (caller holds the lock)
    # ========================================================================

    def _find_slot_holding(self, vehicle: Vehicle) -> Optional[ParkingSlot]:
        for slot in self._slots:
            if slot.holds(vehicle):
                return slot
        return None

    def _find_free_slot(self, slot_type: VehicleType) -> Optional[ParkingSlot]:
        # Slots are kept in number order, so the lowest free number wins
        for slot in self._slots:
            if slot.is_free_for(slot_type):
                return slot
        return None

    def _slot_of(self, vehicle: Vehicle) -> ParkingSlot:
        """Slot of the vehicle's type holding it, or VehicleNotFoundError"""
        for slot in self._slots:
            if slot.slot_type == vehicle.vehicle_type and slot.holds(vehicle):
                return slot
        self._logger.warning(f"Vehicle {vehicle} not found in any slot")
        raise VehicleNotFoundError(
            f"Vehicle {vehicle} not found in any parking slot",
            vehicle=vehicle
        )

    def _release(self, slot: ParkingSlot) -> Vehicle:
        """Free a facility slot, stamp the departure and record the event"""
        if not any(s is slot for s in self._slots):
            self._logger.warning(f"Slot {slot.number} does not belong to {self.name}")
            raise SlotNotFoundError(
                f"Slot {slot.number} does not belong to {self.name}",
                slot=slot
            )
        if slot.is_free():
            self._logger.warning(f"Slot {slot.number} has no vehicle parked")
            raise NoActiveStayError(
                f"No vehicle parked on slot {slot.number}",
                slot=slot
            )

        vehicle = slot.release(self._clock())

        self._add_domain_event(VehicleLeftEvent(
            facility_id=self._id,
            slot_number=slot.number,
            plate=vehicle.plate,
            vehicle_type=vehicle.vehicle_type,
            arrived_at=vehicle.arrived_at,
            departed_at=vehicle.departed_at,
            timestamp=vehicle.departed_at
        ))
        self._logger.info(f"Vehicle {vehicle} left slot {slot.number}")
        return vehicle

    def __str__(self) -> str:
        report = self.get_status_report()
        return (
            f"{self.name}: {report['occupied_slots']}/{report['total_slots']} "
            f"occupied ({report['occupancy_rate']:.1f}%)"
        )
