#!/usr/bin/env python3
"""
Integration Tests for Critical Scenarios

End-to-end flows through settings, the facility, the pricing strategies and
the application service.
"""

import unittest
from decimal import Decimal

from slotpark.config import FacilitySettings, build_facility
from slotpark.domain.models import Vehicle, VehicleType, StayState
from slotpark.domain.aggregates import ParkingFacility
from slotpark.domain.strategies import (
    PerHourStartedPricingStrategy, FlatRateWithExemptionPricingStrategy
)
from slotpark.domain.exceptions import (
    NoSlotAvailableError, StillParkedError, AlreadyParkedError, VehicleNotFoundError
)
from slotpark.application.parking_service import ParkingServiceFactory
from slotpark.infrastructure.messaging import InMemoryMessageQueue
from tests.helpers import FakeClock, START


class TestCriticalScenarios(unittest.TestCase):
    """Scenarios that must work"""

    def setUp(self):
        self.clock = FakeClock()

    def test_1_mixed_facility_fills_up(self):
        """CRITICAL: 3 standard + 1 electric_high slots fill up independently"""
        facility = (ParkingFacility(PerHourStartedPricingStrategy(Decimal('1')), clock=self.clock)
                    .configure(VehicleType.STANDARD, 3)
                    .configure(VehicleType.ELECTRIC_HIGH, 1))

        for i in range(3):
            facility.enter(Vehicle(f"STD-{i}", VehicleType.STANDARD))

        with self.assertRaises(NoSlotAvailableError) as ctx:
            facility.enter(Vehicle("STD-3", VehicleType.STANDARD))
        self.assertIs(ctx.exception.slot_type, VehicleType.STANDARD)

        slot = facility.enter(Vehicle("EV-1", VehicleType.ELECTRIC_HIGH))

        self.assertEqual(slot.number, 4)
        self.assertFalse(facility.has_free_slot(VehicleType.ELECTRIC_HIGH))
        self.assertFalse(facility.has_free_slot(VehicleType.STANDARD))
        self.assertEqual(facility.get_occupancy_rate(), 100.0)

    def test_2_full_stay_with_per_hour_billing(self):
        """CRITICAL: enter, stay, leave, pay"""
        facility = (ParkingFacility(PerHourStartedPricingStrategy(Decimal('1'), Decimal('10')), clock=self.clock)
                    .configure(VehicleType.STANDARD, 2))
        car = Vehicle("AB-123-CD", VehicleType.STANDARD)

        slot = facility.enter(car)
        self.assertEqual(car.arrived_at, START)
        self.assertIs(car.state, StayState.PARKED)

        self.clock.advance(hours=2, milliseconds=1)
        with self.assertRaises(StillParkedError):
            facility.fare(car)

        facility.leave_by_slot(slot)

        self.assertIs(car.state, StayState.DEPARTED)
        self.assertTrue(slot.is_free())
        self.assertEqual(facility.fare(car), Decimal('13'))

    def test_3_free_slot_is_reused_by_lowest_number(self):
        """A freed slot is handed to the next vehicle before higher numbers"""
        facility = ParkingFacility(PerHourStartedPricingStrategy(Decimal('1')), clock=self.clock)
        facility.configure(VehicleType.STANDARD, 3)
        cars = [Vehicle(f"CAR-{i}", VehicleType.STANDARD) for i in range(3)]
        for car in cars:
            facility.enter(car)

        facility.leave_by_vehicle(cars[0])
        facility.leave_by_vehicle(cars[1])

        self.assertEqual(facility.enter(Vehicle("NEXT", VehicleType.STANDARD)).number, 1)

    def test_4_returning_vehicle_starts_a_new_stay(self):
        """A vehicle that left may come back; its new stay is billed alone"""
        facility = ParkingFacility(PerHourStartedPricingStrategy(Decimal('1'), Decimal('10')), clock=self.clock)
        facility.configure(VehicleType.STANDARD, 1)
        car = Vehicle("AB-123-CD", VehicleType.STANDARD)

        facility.enter(car)
        self.clock.advance(hours=5)
        facility.leave_by_vehicle(car)
        self.assertEqual(facility.fare(car), Decimal('15'))

        self.clock.advance(hours=1)
        facility.enter(car)
        self.assertIsNone(car.departed_at)
        self.assertEqual(car.arrived_at, START.replace(hour=15))
        with self.assertRaises(AlreadyParkedError):
            facility.enter(car)

        self.clock.advance(minutes=10)
        facility.leave_by_vehicle(car)
        self.assertEqual(facility.fare(car), Decimal('11'))

        with self.assertRaises(VehicleNotFoundError):
            facility.leave_by_vehicle(car)

    def test_5_flat_rate_exempts_electric_vehicles(self):
        """Electric vehicles park for free under flat pricing"""
        facility = (ParkingFacility(FlatRateWithExemptionPricingStrategy(Decimal('5')), clock=self.clock)
                    .configure(VehicleType.STANDARD, 1)
                    .configure(VehicleType.ELECTRIC_LOW, 1))
        car = Vehicle("AB-123-CD", VehicleType.STANDARD)
        ev = Vehicle("EV-20", VehicleType.ELECTRIC_LOW)

        facility.enter(car)
        facility.enter(ev)
        self.clock.advance(hours=8)
        facility.leave_by_vehicle(car)
        facility.leave_by_vehicle(ev)

        self.assertEqual(facility.fare(car), Decimal('5'))
        self.assertEqual(facility.fare(ev), Decimal('0'))

    def test_6_service_from_settings(self):
        """CRITICAL: settings to service to published events"""
        settings = FacilitySettings.from_dict({
            "name": "Harbour",
            "slots": {"standard": 3, "electric_high": 1},
            "pricing": {"strategy": "per_hour_started", "hourly_rate": "1.50", "fixed_fare": "2"},
        })
        queue = InMemoryMessageQueue()
        received = []
        queue.subscribe("slotpark.vehicle.left", received.append)

        service = ParkingServiceFactory.create_from_settings(settings, message_queue=queue)
        service.facility._clock = self.clock

        allocation = service.park(Vehicle("EV-50", VehicleType.ELECTRIC_HIGH))
        self.assertEqual(allocation.slot_number, 4)

        self.clock.advance(minutes=90)
        receipt = service.leave(Vehicle("EV-50", VehicleType.ELECTRIC_HIGH))

        self.assertEqual(receipt.fare, Decimal('5.00'))
        self.assertEqual(len(received), 1)
        self.assertEqual(received[0].data["slot_number"], 4)
        self.assertEqual(service.get_status().occupied_slots, 0)

    def test_7_build_facility_matches_settings(self):
        settings = FacilitySettings(slots={"standard": 3, "electric_high": 1})
        facility = build_facility(settings)

        self.assertEqual(facility.slot_types, [VehicleType.STANDARD, VehicleType.ELECTRIC_HIGH])
        self.assertEqual([s.number for s in facility.get_slots_by_type(VehicleType.ELECTRIC_HIGH)], [4])


if __name__ == "__main__":
    unittest.main()
