"""JSON and CSV exports of prices and schedules"""

import csv
import io
import json
from typing import Sequence

from models import PriceSlot, Schedule


def schedule_to_json(schedule: Schedule, indent: int = 2) -> str:
    return json.dumps(schedule.to_dict(), indent=indent)


def prices_to_csv(prices: Sequence[PriceSlot]) -> str:
    """Two-column export: ISO timestamp, price in c/kWh"""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["timestamp", "price"])
    for slot in sorted(prices, key=lambda s: s.timestamp):
        writer.writerow([slot.timestamp.isoformat(), f"{slot.price:.4f}"])
    return buf.getvalue()
