# File: slotpark/config.py
"""
Configuration for the Parking Facility Engine

Settings can be built from a dictionary, a JSON file or environment
variables. build_facility() turns settings into a configured facility;
setup_logging() wires the standard logging handlers for applications that
embed the engine (the library itself never configures logging).

Environment variables (default prefix SLOTPARK_):
    NAME              facility name
    SLOTS             "standard=3,electric_high=1"
    PRICING_STRATEGY  "per_hour_started" or "flat_with_exemption"
    HOURLY_RATE       per_hour_started rate
    FIXED_FARE        per_hour_started fixed part
    FIXED_AMOUNT      flat_with_exemption amount
    EXEMPT_TYPES      flat_with_exemption exempt types, comma separated
    EVENT_TOPIC_PREFIX
    REDIS_URL
    LOG_LEVEL
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Mapping, Union
from pathlib import Path
import json
import logging
import os
import sys

from .domain.models import VehicleType
from .domain.aggregates import ParkingFacility
from .domain.strategies import PricingStrategyFactory


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

DEFAULT_PRICING: Dict[str, Any] = {
    "strategy": "per_hour_started",
    "hourly_rate": "1",
    "fixed_fare": "0",
}


@dataclass
class FacilitySettings:
    """Settings of one facility"""
    name: str = "Parking"
    slots: Dict[VehicleType, int] = field(default_factory=dict)
    pricing: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_PRICING))
    event_topic_prefix: str = "slotpark"
    redis_url: Optional[str] = None
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate settings"""
        if not self.name or not self.name.strip():
            raise ValueError("Facility name cannot be empty")

        slots: Dict[VehicleType, int] = {}
        for slot_type, count in self.slots.items():
            slot_type = VehicleType.parse(slot_type)
            if slot_type in slots:
                raise ValueError(f"Slot type {slot_type.value} configured twice")
            if isinstance(count, bool):
                raise ValueError(f"Slot count for {slot_type.value} must be an integer")
            try:
                count = int(count)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Slot count for {slot_type.value} must be an integer: {count!r}") from e
            if count <= 0:
                raise ValueError(f"Slot count for {slot_type.value} must be positive, got {count}")
            slots[slot_type] = count
        self.slots = slots

        if "strategy" not in self.pricing:
            raise ValueError("Pricing settings require a 'strategy' key")

        level = logging.getLevelName(self.log_level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {self.log_level}")
        self.log_level = self.log_level.upper()

    # ========================================================================
    # CONSTRUCTORS
    # ========================================================================

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FacilitySettings":
        """Create settings from a dictionary, e.g. parsed JSON"""
        known = {"name", "slots", "pricing", "event_topic_prefix", "redis_url", "log_level"}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        kwargs = dict(data)
        if "pricing" in kwargs:
            kwargs["pricing"] = dict(kwargs["pricing"])
        if "slots" in kwargs:
            kwargs["slots"] = dict(kwargs["slots"])
        return cls(**kwargs)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "FacilitySettings":
        """Load settings from a JSON file"""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {path} must contain a JSON object")
        return cls.from_dict(data)

    @classmethod
    def from_env(
        cls,
        prefix: str = "SLOTPARK_",
        environ: Optional[Mapping[str, str]] = None
    ) -> "FacilitySettings":
        """Load settings from environment variables"""
        env = os.environ if environ is None else environ

        def get(key: str) -> Optional[str]:
            value = env.get(prefix + key)
            return value.strip() if value and value.strip() else None

        kwargs: Dict[str, Any] = {}
        if get("NAME"):
            kwargs["name"] = get("NAME")
        if get("SLOTS"):
            kwargs["slots"] = parse_slots(get("SLOTS"))
        if get("EVENT_TOPIC_PREFIX"):
            kwargs["event_topic_prefix"] = get("EVENT_TOPIC_PREFIX")
        if get("REDIS_URL"):
            kwargs["redis_url"] = get("REDIS_URL")
        if get("LOG_LEVEL"):
            kwargs["log_level"] = get("LOG_LEVEL")

        strategy = get("PRICING_STRATEGY")
        if strategy:
            pricing: Dict[str, Any] = {"strategy": strategy}
            for key, param in (
                ("HOURLY_RATE", "hourly_rate"),
                ("FIXED_FARE", "fixed_fare"),
                ("FIXED_AMOUNT", "fixed_amount"),
            ):
                if get(key):
                    pricing[param] = get(key)
            if get("EXEMPT_TYPES"):
                pricing["exempt_types"] = [
                    VehicleType.parse(t) for t in get("EXEMPT_TYPES").split(",") if t.strip()
                ]
            kwargs["pricing"] = pricing

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary"""
        return {
            "name": self.name,
            "slots": {slot_type.value: count for slot_type, count in self.slots.items()},
            "pricing": {
                key: ([VehicleType.parse(t).value for t in value] if key == "exempt_types" else value)
                for key, value in self.pricing.items()
            },
            "event_topic_prefix": self.event_topic_prefix,
            "redis_url": self.redis_url,
            "log_level": self.log_level,
        }


def parse_slots(text: str) -> Dict[VehicleType, int]:
    """Parse "standard=3,electric_high=1" into slot counts"""
    slots: Dict[VehicleType, int] = {}
    for item in text.split(","):
        if not item.strip():
            continue
        if "=" not in item:
            raise ValueError(f"Invalid slot specification '{item}', expected type=count")
        name, count = item.split("=", 1)
        slot_type = VehicleType.parse(name)
        if slot_type in slots:
            raise ValueError(f"Slot type {slot_type.value} configured twice")
        try:
            slots[slot_type] = int(count)
        except ValueError as e:
            raise ValueError(f"Invalid slot count in '{item}'") from e
    return slots


def build_facility(settings: FacilitySettings) -> ParkingFacility:
    """Create a facility with its pricing strategy and configured slots"""
    strategy = PricingStrategyFactory.from_config(settings.pricing)
    facility = ParkingFacility(strategy, name=settings.name)
    for slot_type, count in settings.slots.items():
        facility.configure(slot_type, count)
    return facility


def setup_logging(level: Union[str, int] = "INFO", log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    """Setup application logging configuration"""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=level.upper() if isinstance(level, str) else level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )
    return logging.getLogger("slotpark")
