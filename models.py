"""Data models for the day-ahead battery planner"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

DEFAULT_AREA = "LV"
DEFAULT_MARKET = "DayAhead"
DEFAULT_CURRENCY = "EUR"


@dataclass(frozen=True)
class PriceSlot:
    """One day-ahead price observation (cents/kWh) starting at a UTC instant"""
    timestamp: datetime
    price: float

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "price": self.price}

    def __repr__(self):
        return f"{self.timestamp:%m-%d %H:%M} @ {self.price:.2f}"


@dataclass
class BatteryStrategyParams:
    """Inputs of the threshold heuristic.

    Prices are in cents/kWh, budgets in hours. Area, market and currency are
    carried into the output and used by the price source only.
    """
    area: str = DEFAULT_AREA
    max_charge_hours: float = 3.0
    max_discharge_hours: float = 3.0
    last_price_charged: float = 15.0
    epsilon: float = 2.0
    market: str = DEFAULT_MARKET
    currency: str = DEFAULT_CURRENCY


@dataclass(frozen=True)
class Interval:
    """A contiguous run of selected slots"""
    start: datetime
    end: datetime
    avg_price: float

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "avg_price": self.avg_price,
        }

    def __repr__(self):
        return f"{self.start:%m-%d %H:%M}-{self.end:%H:%M} @ {self.avg_price:.2f}"


@dataclass(frozen=True)
class Schedule:
    """Charge/discharge plan for the future part of a price sequence.

    Slots and intervals are tuples; the intervals are grouped from the slots
    once, when the schedule is built.
    """
    area: str
    last_price_charged: float
    epsilon: float
    resolution_minutes: Optional[int] = None
    charge_slots: Tuple[PriceSlot, ...] = ()
    discharge_slots: Tuple[PriceSlot, ...] = ()
    charge_intervals: Tuple[Interval, ...] = ()
    discharge_intervals: Tuple[Interval, ...] = ()

    @classmethod
    def empty(cls, params: BatteryStrategyParams) -> "Schedule":
        return cls(
            area=params.area,
            last_price_charged=params.last_price_charged,
            epsilon=params.epsilon,
        )

    @property
    def is_empty(self) -> bool:
        return self.resolution_minutes is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "area": self.area,
            "last_price_charged": self.last_price_charged,
            "epsilon": self.epsilon,
            "resolution_minutes": self.resolution_minutes,
            "charge_slots": [s.to_dict() for s in self.charge_slots],
            "discharge_slots": [s.to_dict() for s in self.discharge_slots],
            "charge_intervals": [i.to_dict() for i in self.charge_intervals],
            "discharge_intervals": [i.to_dict() for i in self.discharge_intervals],
        }
