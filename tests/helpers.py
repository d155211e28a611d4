# File: tests/helpers.py
"""
Shared test helpers: a controllable clock and vehicle records with
hand-set stay timestamps.
"""

import threading
from datetime import datetime, timedelta
from typing import Optional

from slotpark.domain.models import Vehicle, VehicleType


START = datetime(2024, 3, 1, 9, 0, 0)


class FakeClock:
    """Clock returning a fixed time until advanced"""

    def __init__(self, start: datetime = START):
        self._now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, **kwargs) -> datetime:
        with self._lock:
            self._now += timedelta(**kwargs)
            return self._now


def make_stay(
    plate: str = "AB-123-CD",
    vehicle_type: VehicleType = VehicleType.STANDARD,
    arrived_at: Optional[datetime] = START,
    departed_at: Optional[datetime] = None
) -> Vehicle:
    """Build a vehicle record as if a facility had processed it"""
    vehicle = Vehicle(plate, vehicle_type)
    if arrived_at is not None:
        vehicle._mark_arrived(arrived_at)
    if departed_at is not None:
        vehicle._mark_departed(departed_at)
    return vehicle
