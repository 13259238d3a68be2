"""Text chart of a schedule for terminals.

Colours are written as rich console markup; with ``colorize`` off the markup
is stripped so the chart can go to files or logs unchanged.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, Set

from rich.markup import escape
from rich.text import Text

from models import PriceSlot, Schedule

BLOCKS = "▁▂▃▄▅▆▇█"
IDLE, CHARGE, DISCHARGE = 0, 1, 2

COLORS = {IDLE: "dodger_blue1", CHARGE: "green", DISCHARGE: "red"}
MARKS = {IDLE: ".", CHARGE: "C", DISCHARGE: "D"}


class FilterMode(Enum):
    ALL = "all"
    CHARGE_ONLY = "charge"
    DISCHARGE_ONLY = "discharge"


@dataclass
class ChartOptions:
    colorize: bool = False
    max_width: int = 30  # bar width
    max_points: int = 80  # sparkline downsample limit


def _wrap(s: str, color: str) -> str:
    return f"[{color}]{s}[/]" if color else s


def _finish(markup: str, colorize: bool) -> str:
    return markup if colorize else Text.from_markup(markup).plain


def _slot_type(slot: PriceSlot, charge: Set[datetime], discharge: Set[datetime]) -> int:
    if slot.timestamp in charge:
        return CHARGE
    if slot.timestamp in discharge:
        return DISCHARGE
    return IDLE


def _visible(slot: PriceSlot, charge: Set[datetime], discharge: Set[datetime], mode: FilterMode) -> bool:
    # by membership: a slot in both sets shows under either filter
    if mode == FilterMode.CHARGE_ONLY:
        return slot.timestamp in charge
    if mode == FilterMode.DISCHARGE_ONLY:
        return slot.timestamp in discharge
    return True


def _relative(price: float, min_p: float, max_p: float) -> float:
    return (price - min_p) / (max_p - min_p) if max_p > min_p else 0.0


def build_sparkline(slots: Sequence[PriceSlot], charge: Set[datetime], discharge: Set[datetime],
                    min_p: float, max_p: float, mode: FilterMode, options: ChartOptions) -> str:
    step = 1
    if len(slots) > options.max_points:
        step = math.ceil(len(slots) / options.max_points)

    blocks, marks = [], []
    for slot in slots[::step]:
        if not _visible(slot, charge, discharge, mode):
            continue
        typ = _slot_type(slot, charge, discharge)
        idx = round(_relative(slot.price, min_p, max_p) * (len(BLOCKS) - 1))
        idx = min(max(idx, 0), len(BLOCKS) - 1)
        blocks.append(_wrap(BLOCKS[idx], COLORS[typ]))
        marks.append(_wrap(MARKS[typ], COLORS[typ]))

    if not blocks:
        return ""
    return f"Sparkline: prices (blocks) / mode (C/D/.)\n{''.join(blocks)}\n{''.join(marks)}\n\n"


def _frame(lines: List[tuple], i: int) -> str:
    typ = lines[i][1]
    if typ == IDLE:
        return " "
    prev_same = i > 0 and lines[i - 1][1] == typ
    next_same = i < len(lines) - 1 and lines[i + 1][1] == typ
    if next_same:
        sym = "│" if prev_same else "╭"
    else:
        sym = "╰" if prev_same else "•"
    return _wrap(sym, COLORS[typ])


def build_chart(prices: Sequence[PriceSlot], schedule: Schedule, now: datetime,
                mode: FilterMode = FilterMode.ALL, options: Optional[ChartOptions] = None) -> str:
    """Render future prices with their charge/discharge marks, one line per slot"""
    options = options or ChartOptions()

    future = [p for p in sorted(prices, key=lambda s: s.timestamp) if p.timestamp >= now]
    if not future:
        return _finish("[red]No future slots available.[/]\n", options.colorize)

    min_p = min(p.price for p in future)
    max_p = max(p.price for p in future)
    charge = {s.timestamp for s in schedule.charge_slots}
    discharge = {s.timestamp for s in schedule.discharge_slots}

    filter_label = {
        FilterMode.ALL: "All (A)",
        FilterMode.CHARGE_ONLY: "Charge only (C)",
        FilterMode.DISCHARGE_ONLY: "Discharge only (D)",
    }[mode]

    out = [
        f"[yellow]Nord Pool chart for {escape(schedule.area)} (c/kWh)[/]\n",
        f"Legend: {_wrap('C', COLORS[CHARGE])}=charge  {_wrap('D', COLORS[DISCHARGE])}=discharge  "
        f"{_wrap('.', COLORS[IDLE])}=idle\n",
        f"Filter: {filter_label}\n\n",
        build_sparkline(future, charge, discharge, min_p, max_p, mode, options),
    ]

    lines = []
    for slot in future:
        if _visible(slot, charge, discharge, mode):
            lines.append((slot, _slot_type(slot, charge, discharge)))

    if not lines:
        out.append("[red]No slots for this filter.[/]\n")
        return _finish("".join(out), options.colorize)

    for i, (slot, typ) in enumerate(lines):
        length = max(1, round(_relative(slot.price, min_p, max_p) * options.max_width))
        bar = _wrap("█" * length, COLORS[typ])
        out.append(f"{_frame(lines, i)} {slot.timestamp:%m-%d %H:%M} | {slot.price:6.2f} c/kWh | "
                   f"{_wrap(MARKS[typ], COLORS[typ])} | {bar}\n")

    return _finish("".join(out), options.colorize)
