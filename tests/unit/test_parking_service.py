#!/usr/bin/env python3
"""
Parking Service Unit Tests

Tests for the application service: use cases, returned DTOs and event
publication.
"""

import json
import unittest
from unittest.mock import Mock, patch
from datetime import timedelta
from decimal import Decimal

from pydantic import ValidationError

from slotpark.domain.models import Vehicle, VehicleType, ParkingSlot
from slotpark.domain.aggregates import ParkingFacility
from slotpark.domain.strategies import PerHourStartedPricingStrategy
from slotpark.domain.exceptions import (
    AlreadyParkedError, NoSlotAvailableError, VehicleNotFoundError,
    NoActiveStayError, SlotNotFoundError
)
from slotpark.application.parking_service import ParkingService, ParkingServiceFactory
from slotpark.application.dtos import ParkingAllocationDTO, ParkingExitDTO, FacilityStatusDTO
from slotpark.infrastructure.messaging import InMemoryMessageQueue, MessageQueue, RedisMessageQueue
from slotpark.config import FacilitySettings
from tests.helpers import FakeClock, START


class ParkingServiceTestCase(unittest.TestCase):
    """Service over a facility with 2 standard slots and 1 electric_low slot"""

    def setUp(self):
        self.clock = FakeClock()
        self.facility = ParkingFacility(
            PerHourStartedPricingStrategy(Decimal('2'), Decimal('1')),
            name="Test Facility",
            clock=self.clock
        )
        self.facility.configure(VehicleType.STANDARD, 2)
        self.facility.configure(VehicleType.ELECTRIC_LOW, 1)
        self.queue = InMemoryMessageQueue()
        self.service = ParkingService(self.facility, self.queue)
        self.car = Vehicle("AB-123-CD", VehicleType.STANDARD)


class TestPark(ParkingServiceTestCase):

    def test_park_returns_allocation(self):
        allocation = self.service.park(self.car)

        self.assertIsInstance(allocation, ParkingAllocationDTO)
        self.assertEqual(allocation.plate, "AB-123-CD")
        self.assertEqual(allocation.vehicle_type, "standard")
        self.assertEqual(allocation.slot_number, 1)
        self.assertEqual(allocation.slot_type, "standard")
        self.assertEqual(allocation.arrived_at, START)
        self.assertEqual(allocation.facility_id, self.facility.id)
        self.assertEqual(allocation.to_dict()["arrived_at"], START.isoformat())

    def test_park_publishes_parked_event(self):
        self.service.park(self.car)

        messages = self.queue.get_messages("slotpark.vehicle.parked")
        self.assertEqual(len(messages), 1)
        self.assertEqual(messages[0].data["plate"], "AB-123-CD")
        self.assertEqual(messages[0].data["slot_number"], 1)
        self.assertEqual(messages[0].source, self.facility.id)
        self.assertFalse(self.facility.has_changes)

    def test_refused_entry_is_reraised(self):
        self.service.park(self.car)

        with self.assertLogs("ParkingService", level="WARNING") as logs:
            with self.assertRaises(AlreadyParkedError):
                self.service.park(Vehicle("AB-123-CD", VehicleType.STANDARD))

        self.assertIn("already_parked", logs.output[0])
        self.assertEqual(len(self.queue.get_messages("slotpark.vehicle.parked")), 1)

    def test_full_facility(self):
        self.service.park(Vehicle("EV-1", VehicleType.ELECTRIC_LOW))
        with self.assertRaises(NoSlotAvailableError):
            self.service.park(Vehicle("EV-2", VehicleType.ELECTRIC_LOW))


class TestLeave(ParkingServiceTestCase):

    def test_leave_returns_bill(self):
        self.service.park(self.car)
        self.clock.advance(hours=1, minutes=5)

        receipt = self.service.leave(self.car)

        self.assertIsInstance(receipt, ParkingExitDTO)
        self.assertEqual(receipt.slot_number, 1)
        self.assertEqual(receipt.departed_at, self.clock())
        self.assertEqual(receipt.duration_minutes, 65.0)
        # 1 + 2 started hours at 2
        self.assertEqual(receipt.fare, Decimal('5'))
        self.assertEqual(receipt.to_dict()["fare"], "5")
        self.assertFalse(self.facility.is_parked(self.car))

    def test_leave_publishes_left_event(self):
        self.service.park(self.car)
        self.clock.advance(minutes=30)
        self.service.leave(self.car)

        messages = self.queue.get_messages("slotpark.vehicle.left")
        self.assertEqual(len(messages), 1)
        self.assertEqual(messages[0].data["duration_minutes"], 30.0)

    def test_unknown_vehicle(self):
        with self.assertRaises(VehicleNotFoundError):
            self.service.leave(self.car)
        self.assertEqual(self.queue.get_messages("slotpark.vehicle.left"), [])

    def test_leave_slot(self):
        self.service.park(self.car)
        slot = self.facility.find_slot(self.car)
        self.clock.advance(hours=3)

        receipt = self.service.leave_slot(slot)

        self.assertEqual(receipt.plate, "AB-123-CD")
        self.assertEqual(receipt.slot_number, 1)
        self.assertEqual(receipt.fare, Decimal('7'))

    def test_leave_free_slot(self):
        slot = self.facility.get_slots_by_type(VehicleType.STANDARD)[0]
        with self.assertRaises(NoActiveStayError):
            self.service.leave_slot(slot)

    def test_leave_foreign_slot(self):
        with self.assertRaises(SlotNotFoundError):
            self.service.leave_slot(ParkingSlot(1, VehicleType.STANDARD))


class TestStatusAndEvents(ParkingServiceTestCase):

    def test_get_status(self):
        self.service.park(self.car)

        status = self.service.get_status()

        self.assertIsInstance(status, FacilityStatusDTO)
        self.assertEqual(status.total_slots, 3)
        self.assertEqual(status.occupied_slots, 1)
        self.assertEqual(status.available_slots, 2)
        self.assertEqual(status.free_slots("standard"), 1)
        self.assertEqual(status.free_slots("electric_low"), 1)
        self.assertEqual(status.free_slots("electric_high"), 0)
        self.assertIsNotNone(status.timestamp)

    def test_custom_topic_prefix(self):
        service = ParkingService(self.facility, self.queue, topic_prefix="lot7")
        service.park(self.car)
        self.assertEqual(len(self.queue.get_messages("lot7.vehicle.parked")), 1)

    def test_without_queue_events_are_drained(self):
        service = ParkingService(self.facility)
        service.park(self.car)

        self.assertEqual(service.publish_pending_events(), [])
        self.assertFalse(self.facility.has_changes)

    def test_publish_pending_events_returns_messages(self):
        self.facility.enter(self.car)

        messages = self.service.publish_pending_events()

        self.assertEqual([m.event_type for m in messages], ["vehicle.parked"])

    def test_close_closes_queue(self):
        queue = Mock(spec=MessageQueue)
        ParkingService(self.facility, queue).close()
        queue.close.assert_called_once()


class TestDTOs(unittest.TestCase):

    def exit_data(self, **overrides):
        data = {
            "plate": "AB-123-CD",
            "vehicle_type": "standard",
            "slot_number": 1,
            "arrived_at": START,
            "departed_at": START + timedelta(minutes=90),
            "fare": Decimal('3.50'),
            "facility_id": "fac-1",
        }
        data.update(overrides)
        return data

    def test_exit_json_round_trip(self):
        receipt = ParkingExitDTO(**self.exit_data())

        data = json.loads(receipt.to_json())

        self.assertEqual(data["fare"], "3.50")
        self.assertEqual(data["duration_minutes"], 90.0)
        self.assertEqual(ParkingExitDTO.from_json(receipt.to_json()), receipt)

    def test_exit_validation(self):
        with self.assertRaises(ValidationError):
            ParkingExitDTO(**self.exit_data(departed_at=START - timedelta(minutes=1)))
        with self.assertRaises(ValidationError):
            ParkingExitDTO(**self.exit_data(fare=Decimal('-1')))
        with self.assertRaises(ValidationError):
            ParkingExitDTO(**self.exit_data(plate=""))

    def test_dtos_are_immutable(self):
        receipt = ParkingExitDTO(**self.exit_data())
        with self.assertRaises(ValidationError):
            receipt.fare = Decimal('0')


class TestParkingServiceFactory(unittest.TestCase):

    def test_create_from_settings_with_in_memory_queue(self):
        settings = FacilitySettings(
            name="Depot",
            slots={"standard": 2},
            event_topic_prefix="depot"
        )

        service = ParkingServiceFactory.create_from_settings(settings)

        self.assertIsInstance(service.message_queue, InMemoryMessageQueue)
        self.assertEqual(service.facility.name, "Depot")
        self.assertEqual(service.topic_prefix, "depot")
        self.assertEqual(service.facility.total_slots, 2)

    @patch("slotpark.infrastructure.messaging.redis.Redis.from_url")
    def test_create_from_settings_with_redis(self, from_url):
        settings = FacilitySettings(slots={"standard": 1}, redis_url="redis://localhost:6379")

        service = ParkingServiceFactory.create_from_settings(settings)

        self.assertIsInstance(service.message_queue, RedisMessageQueue)
        from_url.assert_called_once_with("redis://localhost:6379")

    def test_explicit_queue_wins(self):
        queue = InMemoryMessageQueue()
        settings = FacilitySettings(redis_url="redis://localhost:6379")
        service = ParkingServiceFactory.create_from_settings(settings, message_queue=queue)
        self.assertIs(service.message_queue, queue)


if __name__ == "__main__":
    unittest.main()
