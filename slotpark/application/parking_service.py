# File: slotpark/application/parking_service.py
"""
Parking Application Service

This module implements the application service layer on top of the
ParkingFacility aggregate.

Responsibilities:
1. Execute the use cases (vehicle entry, vehicle exit with billing, status)
2. Publish the facility domain events once an operation has committed
3. Return plain DTOs to the interface layer

Engine errors (ParkingError subclasses) are logged and re-raised unchanged:
they are business conditions the caller decides about.
"""

from typing import Optional, List
from datetime import datetime
import logging

from ..domain.models import Vehicle, ParkingSlot
from ..domain.aggregates import ParkingFacility
from ..domain.exceptions import ParkingError, describe
from ..infrastructure.messaging import Message, MessageQueue, MessageBrokerFactory
from ..config import FacilitySettings, build_facility
from .dtos import ParkingAllocationDTO, ParkingExitDTO, FacilityStatusDTO


class ParkingService:
    """
    Main application service for a parking facility

    Every mutating use case runs on the facility first; the events it
    recorded are published afterwards, outside the facility lock.
    """

    def __init__(
        self,
        facility: ParkingFacility,
        message_queue: Optional[MessageQueue] = None,
        topic_prefix: str = "slotpark"
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.facility = facility
        self.message_queue = message_queue
        self.topic_prefix = topic_prefix

        self.logger.info(f"ParkingService initialized for {facility.name}")

    # ========================================================================
    # USE CASES
    # ========================================================================

    def park(self, vehicle: Vehicle) -> ParkingAllocationDTO:
        """
        Use Case: Vehicle Entry
        Raises: AlreadyParkedError, NoSlotAvailableError
        """
        self.logger.info(f"Processing entry for {vehicle}")
        try:
            slot = self.facility.enter(vehicle)
        except ParkingError as e:
            self.logger.warning(f"Entry refused for {vehicle} ({describe(e)}): {e}")
            raise

        self.publish_pending_events()
        return ParkingAllocationDTO(
            plate=vehicle.plate,
            vehicle_type=vehicle.vehicle_type.value,
            slot_number=slot.number,
            slot_type=slot.slot_type.value,
            arrived_at=vehicle.arrived_at,
            facility_id=self.facility.id
        )

    def leave(self, vehicle: Vehicle) -> ParkingExitDTO:
        """
        Use Case: Vehicle Exit, releasing the slot and billing the stay
        Raises: VehicleNotFoundError, NoActiveStayError, PricingError
        """
        self.logger.info(f"Processing exit for {vehicle}")
        try:
            slot_number, stay = self.facility.checkout_by_vehicle(vehicle)
        except ParkingError as e:
            self.logger.warning(f"Exit refused for {vehicle} ({describe(e)}): {e}")
            raise
        finally:
            self.publish_pending_events()

        return self._bill(stay, slot_number)

    def leave_slot(self, slot: ParkingSlot) -> ParkingExitDTO:
        """
        Use Case: Vehicle Exit identified by its slot
        Raises: SlotNotFoundError, NoActiveStayError, PricingError
        """
        try:
            slot_number, stay = self.facility.checkout_by_slot(slot)
        except ParkingError as e:
            self.logger.warning(f"Exit refused for slot {slot.number} ({describe(e)}): {e}")
            raise
        finally:
            self.publish_pending_events()

        return self._bill(stay, slot_number)

    def get_status(self) -> FacilityStatusDTO:
        """Use Case: Occupancy monitoring"""
        report = self.facility.get_status_report()
        return FacilityStatusDTO(
            facility_id=report["facility_id"],
            name=report["name"],
            total_slots=report["total_slots"],
            occupied_slots=report["occupied_slots"],
            available_slots=report["available_slots"],
            occupancy_rate=report["occupancy_rate"],
            by_slot_type=report["by_slot_type"],
            timestamp=datetime.now()
        )

    # ========================================================================
    # EVENT PUBLICATION
    # ========================================================================

    def publish_pending_events(self) -> List[Message]:
        """Drain the facility events and publish them, if a queue is configured"""
        events = self.facility.clear_events()
        if self.message_queue is None:
            return []

        messages = []
        for event in events:
            message = Message.from_event(event, source=self.facility.id)
            topic = f"{self.topic_prefix}.{event.event_type}"
            delivered = self.message_queue.publish(topic, message)
            if not delivered:
                self.logger.debug(f"No subscriber received {event.event_type} ({message.message_id})")
            messages.append(message)
        return messages

    def _bill(self, stay: Vehicle, slot_number: int) -> ParkingExitDTO:
        amount = self.facility.price(stay)
        return ParkingExitDTO(
            plate=stay.plate,
            vehicle_type=stay.vehicle_type.value,
            slot_number=slot_number,
            arrived_at=stay.arrived_at,
            departed_at=stay.departed_at,
            fare=amount,
            facility_id=self.facility.id
        )

    def close(self) -> None:
        if self.message_queue is not None:
            self.message_queue.close()


# ============================================================================
# SERVICE FACTORY
# ============================================================================

class ParkingServiceFactory:
    """Factory for creating parking service instances"""

    @staticmethod
    def create_from_settings(
        settings: FacilitySettings,
        message_queue: Optional[MessageQueue] = None
    ) -> ParkingService:
        """Build the facility and its broker from settings"""
        facility = build_facility(settings)
        if message_queue is None:
            message_queue = MessageBrokerFactory.create(settings.redis_url)
        return ParkingService(facility, message_queue, settings.event_topic_prefix)
