"""Threshold-based charge/discharge slot selection"""

import logging
import math
from datetime import datetime, timedelta
from typing import List, Sequence

from models import BatteryStrategyParams, Interval, PriceSlot, Schedule

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION_MINUTES = 60
# Discharge floor in c/kWh, applied whatever last_price_charged + epsilon says
DISCHARGE_THRESHOLD_CAP = 8.0


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def infer_resolution_minutes(prices: Sequence[PriceSlot]) -> int:
    """Median spacing of the slots in minutes, taken pairwise in the given order.

    Feeds can mix 60 and 15 minute slots around DST changes or provider
    switches, so the median is used rather than the mean.
    """
    if len(prices) < 2:
        return DEFAULT_RESOLUTION_MINUTES

    deltas = sorted(
        (cur.timestamp - prev.timestamp).total_seconds() / 60
        for prev, cur in zip(prices, prices[1:])
    )
    mid = len(deltas) // 2
    if len(deltas) % 2 == 0:
        median = (deltas[mid - 1] + deltas[mid]) / 2
    else:
        median = deltas[mid]
    return _round_half_away(median)


def slots_for_hours(max_hours: float, resolution_minutes: int) -> int:
    """Convert an hour budget into a slot count at the given resolution"""
    return math.ceil(max_hours * 60 / resolution_minutes)


def group_consecutive_slots(slots: Sequence[PriceSlot], resolution_minutes: int) -> List[Interval]:
    """Merge slots exactly one resolution step apart into intervals"""
    if not slots:
        return []

    ordered = sorted(slots, key=lambda s: s.timestamp)
    step = timedelta(minutes=resolution_minutes)

    groups = [[ordered[0]]]
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.timestamp - prev.timestamp == step:
            groups[-1].append(cur)
        else:
            groups.append([cur])

    return [
        Interval(
            start=group[0].timestamp,
            end=group[-1].timestamp + step,
            avg_price=sum(s.price for s in group) / len(group),
        )
        for group in groups
    ]


def discharge_threshold(params: BatteryStrategyParams) -> float:
    return min(params.last_price_charged + params.epsilon, DISCHARGE_THRESHOLD_CAP)


def build_battery_schedule(prices: Sequence[PriceSlot], params: BatteryStrategyParams,
                           now: datetime) -> Schedule:
    """Pick charge and discharge slots from the prices at or after ``now``.

    Charge candidates are at least ``epsilon`` cheaper than the last charge
    price, discharge candidates are at or above the capped threshold. A slot
    can be both; neither side is deduplicated against the other. The cheapest
    (charge) and priciest (discharge) candidates are kept up to the hour
    budgets, ties keeping chronological order, then returned in time order.
    """
    future = [p for p in sorted(prices, key=lambda s: s.timestamp) if p.timestamp >= now]
    if not future:
        logger.debug(f"build_battery_schedule future=0 area={params.area}")
        return Schedule.empty(params)

    resolution = infer_resolution_minutes(future)
    if resolution <= 0:
        # Only reachable with duplicate timestamps
        logger.warning(f"Degenerate resolution {resolution} min, using {DEFAULT_RESOLUTION_MINUTES}")
        resolution = DEFAULT_RESOLUTION_MINUTES
    max_charge_slots = max(0, slots_for_hours(params.max_charge_hours, resolution))
    max_discharge_slots = max(0, slots_for_hours(params.max_discharge_hours, resolution))
    threshold = discharge_threshold(params)

    charge_candidates = [s for s in future if params.last_price_charged - s.price >= params.epsilon]
    discharge_candidates = [s for s in future if s.price >= threshold]

    charge_slots = sorted(charge_candidates, key=lambda s: s.price)[:max_charge_slots]
    discharge_slots = sorted(discharge_candidates, key=lambda s: s.price, reverse=True)[:max_discharge_slots]

    charge_slots.sort(key=lambda s: s.timestamp)
    discharge_slots.sort(key=lambda s: s.timestamp)

    logger.debug(f"build_battery_schedule future={len(future)} resolution={resolution} "
                 f"threshold={threshold:.2f} charge={len(charge_slots)}/{len(charge_candidates)} "
                 f"discharge={len(discharge_slots)}/{len(discharge_candidates)}")

    return Schedule(
        area=params.area,
        last_price_charged=params.last_price_charged,
        epsilon=params.epsilon,
        resolution_minutes=resolution,
        charge_slots=tuple(charge_slots),
        discharge_slots=tuple(discharge_slots),
        charge_intervals=tuple(group_consecutive_slots(charge_slots, resolution)),
        discharge_intervals=tuple(group_consecutive_slots(discharge_slots, resolution)),
    )
