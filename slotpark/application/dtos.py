# File: slotpark/application/dtos.py
"""
Data Transfer Objects for the Parking Facility Engine

DTOs carry operation results out of the application layer as plain values,
so callers do not keep references to live slots or vehicle records.

DTO Principles:
- Immutable (frozen models)
- Validation at creation
- Serialization support (to_dict / to_json give JSON-compatible values)
"""

from typing import Dict, Optional, Any
from datetime import datetime
from decimal import Decimal
import json

from pydantic import BaseModel, Field, ConfigDict, computed_field, field_validator


class BaseDTO(BaseModel):
    """Base DTO with common functionality"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_dict(self, exclude_none: bool = False) -> Dict[str, Any]:
        """Convert DTO to a JSON-compatible dictionary"""
        return self.model_dump(mode="json", exclude_none=exclude_none)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, json_str: str) -> "BaseDTO":
        return cls(**json.loads(json_str))


class ParkingAllocationDTO(BaseDTO):
    """DTO for a successful vehicle entry"""
    plate: str = Field(min_length=1, description="License plate")
    vehicle_type: str = Field(description="Vehicle type value")
    slot_number: int = Field(ge=1, description="Number of the occupied slot")
    slot_type: str = Field(description="Slot type value")
    arrived_at: datetime = Field(description="Arrival time")
    facility_id: str = Field(description="Facility identifier")


class ParkingExitDTO(BaseDTO):
    """DTO for a completed stay: departure plus fare"""
    plate: str = Field(min_length=1, description="License plate")
    vehicle_type: str = Field(description="Vehicle type value")
    slot_number: int = Field(ge=1, description="Number of the released slot")
    arrived_at: datetime = Field(description="Arrival time")
    departed_at: datetime = Field(description="Departure time")
    fare: Decimal = Field(ge=0, description="Amount due")
    facility_id: str = Field(description="Facility identifier")

    @field_validator("departed_at")
    @classmethod
    def validate_departure(cls, v: datetime, info) -> datetime:
        arrived_at = info.data.get("arrived_at")
        if arrived_at is not None and v < arrived_at:
            raise ValueError("Departure cannot precede arrival")
        return v

    @computed_field
    @property
    def duration_minutes(self) -> float:
        return (self.departed_at - self.arrived_at).total_seconds() / 60


class FacilityStatusDTO(BaseDTO):
    """DTO for facility occupancy"""
    facility_id: str
    name: str
    total_slots: int = Field(ge=0)
    occupied_slots: int = Field(ge=0)
    available_slots: int = Field(ge=0)
    occupancy_rate: float = Field(ge=0, le=100)
    by_slot_type: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None

    def free_slots(self, slot_type: str) -> int:
        return self.by_slot_type.get(slot_type, {}).get("free", 0)
