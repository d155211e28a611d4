# File: slotpark/domain/strategies.py
"""
Strategy Pattern Implementation for Parking Fares

This module implements the Strategy Pattern to encapsulate the algorithms that
turn a completed stay into a fare. A facility is given one strategy at
construction and delegates every fare computation to it.

Key Strategies:
1. FlatRateWithExemptionPricingStrategy - Fixed fare, free for exempt vehicle types
2. PerHourStartedPricingStrategy - Fixed fare plus a rate for every hour started

All amounts are Decimal values; floats are rejected to avoid rounding drift.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, Iterable, FrozenSet, Type
from datetime import timedelta
from decimal import Decimal, InvalidOperation
import inspect
import logging

from .models import Vehicle, VehicleType
from .exceptions import MissingArrivalError, MissingDepartureError


ONE_HOUR = timedelta(hours=1)


def to_amount(value: Any, name: str = "amount") -> Decimal:
    """
    Convert a configured amount to Decimal
    Accepts Decimal, int or numeric strings; rejects floats and negatives
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{name} must be a Decimal, int or str, got {type(value).__name__}")

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"{name} is not a valid amount: {value!r}") from e

    if not amount.is_finite():
        raise ValueError(f"{name} must be finite: {value!r}")
    if amount < Decimal('0'):
        raise ValueError(f"{name} cannot be negative: {amount}")
    return amount


def started_hours(duration: timedelta) -> int:
    """
    Number of hours started during a stay, with a minimum of one
    15 minutes -> 1, exactly 2 hours -> 2, 2 hours and 1 ms -> 3
    """
    if duration <= timedelta(0):
        return 1
    full_hours, remainder = divmod(duration, ONE_HOUR)
    if remainder:
        full_hours += 1
    return max(1, full_hours)


# ============================================================================
# STRATEGY INTERFACE
# ============================================================================

class PricingStrategy(ABC):
    """
    Abstract base class for pricing strategies
    Defines the interface for fare calculation algorithms
    """

    name = "pricing"

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def compute_fare(self, vehicle: Vehicle) -> Decimal:
        """
        Compute the fare of a completed stay
        Raises: MissingArrivalError / MissingDepartureError on incomplete records
        """
        pass

    def _require_completed_stay(self, vehicle: Vehicle) -> timedelta:
        """Check both timestamps are present and return the stay duration"""
        if vehicle.arrived_at is None:
            raise MissingArrivalError(
                f"Vehicle {vehicle} never entered the facility, unable to compute the fare",
                vehicle=vehicle
            )
        if vehicle.departed_at is None:
            raise MissingDepartureError(
                f"Vehicle {vehicle} has no departure time registered",
                vehicle=vehicle
            )
        return vehicle.departed_at - vehicle.arrived_at

    def describe(self) -> Dict[str, Any]:
        """Strategy parameters, as accepted by PricingStrategyFactory.create"""
        return {"strategy": self.name}

    def get_strategy_name(self) -> str:
        """Get human-readable strategy name"""
        return self.__class__.__name__.replace("PricingStrategy", "")

    def __str__(self) -> str:
        return f"{self.get_strategy_name()} Pricing"


# ============================================================================
# PRICING STRATEGIES
# ============================================================================

class FlatRateWithExemptionPricingStrategy(PricingStrategy):
    """
    Strategy: fixed fare regardless of duration
    - Exempt vehicle types park for free (electric vehicles by default)
    - Every other type pays the fixed amount
    """

    name = "flat_with_exemption"

    def __init__(
        self,
        fixed_amount: Any,
        exempt_types: Optional[Iterable[VehicleType]] = None
    ):
        super().__init__()
        self.fixed_amount = to_amount(fixed_amount, "fixed_amount")
        if exempt_types is None:
            exempt_types = [t for t in VehicleType if t.is_electric]
        self.exempt_types: FrozenSet[VehicleType] = frozenset(VehicleType.parse(t) for t in exempt_types)

    def compute_fare(self, vehicle: Vehicle) -> Decimal:
        self._require_completed_stay(vehicle)

        if vehicle.vehicle_type in self.exempt_types:
            self.logger.debug(f"{vehicle} is exempt from charges")
            return Decimal('0')
        return self.fixed_amount

    def describe(self) -> Dict[str, Any]:
        return {
            "strategy": self.name,
            "fixed_amount": str(self.fixed_amount),
            "exempt_types": sorted(t.value for t in self.exempt_types),
        }


class PerHourStartedPricingStrategy(PricingStrategy):
    """
    Strategy: charge every hour started in full
    - fixed_fare is charged once, whatever the duration
    - hourly_rate is charged for each hour started, at least one
    """

    name = "per_hour_started"

    def __init__(self, hourly_rate: Any, fixed_fare: Any = Decimal('0')):
        super().__init__()
        self.hourly_rate = to_amount(hourly_rate, "hourly_rate")
        self.fixed_fare = to_amount(fixed_fare, "fixed_fare")

    def compute_fare(self, vehicle: Vehicle) -> Decimal:
        duration = self._require_completed_stay(vehicle)
        hours = started_hours(duration)

        fare = self.fixed_fare + self.hourly_rate * hours
        self.logger.debug(f"Fare for {vehicle}: {hours} hour(s) started -> {fare}")
        return fare

    def describe(self) -> Dict[str, Any]:
        return {
            "strategy": self.name,
            "hourly_rate": str(self.hourly_rate),
            "fixed_fare": str(self.fixed_fare),
        }


# ============================================================================
# STRATEGY FACTORY
# ============================================================================

class PricingStrategyFactory:
    """Factory for creating pricing strategies by name"""

    _strategies: Dict[str, Type[PricingStrategy]] = {
        FlatRateWithExemptionPricingStrategy.name: FlatRateWithExemptionPricingStrategy,
        PerHourStartedPricingStrategy.name: PerHourStartedPricingStrategy,
    }

    @classmethod
    def create(cls, strategy: str, **params: Any) -> PricingStrategy:
        """
        Create a strategy from its name and parameters
        Raises: ValueError for unknown names, unknown or missing parameters
                and invalid amounts; TypeError for float amounts
        """
        key = strategy.strip().lower()
        if key not in cls._strategies:
            raise ValueError(
                f"Unknown pricing strategy '{strategy}'. "
                f"Available: {', '.join(sorted(cls._strategies))}"
            )

        strategy_class = cls._strategies[key]
        try:
            inspect.signature(strategy_class).bind(**params)
        except TypeError as e:
            raise ValueError(f"Invalid parameters for '{key}' pricing: {e}") from e
        return strategy_class(**params)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> PricingStrategy:
        """Create a strategy from a {"strategy": name, ...params} mapping"""
        params = dict(config)
        name = params.pop("strategy", None)
        if not name:
            raise ValueError("Pricing configuration requires a 'strategy' key")
        return cls.create(name, **params)

    @classmethod
    def register(cls, name: str, strategy_class: Type[PricingStrategy]) -> None:
        """Register a custom strategy"""
        if not issubclass(strategy_class, PricingStrategy):
            raise TypeError(f"{strategy_class.__name__} is not a PricingStrategy")
        cls._strategies[name.strip().lower()] = strategy_class

    @classmethod
    def available(cls) -> Iterable[str]:
        return sorted(cls._strategies)
