"""Price caching for today and tomorrow"""

import json
import logging
import os
from collections import defaultdict
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from models import PriceSlot
from price_fetcher import NordpoolFetcher, parse_timestamp, today_and_tomorrow_utc

logger = logging.getLogger(__name__)

# Nord Pool publishes 24 (or 96) slots a day; leave slack for DST days
MIN_SLOTS_PER_DAY = 20

CacheData = Dict[str, Dict[str, List[list]]]


def cache_key(area: str, market: str, currency: str) -> str:
    return f"{area}/{market}/{currency}"


class PriceCache:
    """Caches day-ahead prices per area/market/currency for today and tomorrow (UTC)"""

    def __init__(self, cache_file: Optional[str] = None):
        if cache_file:
            self._price_cache_file = Path(cache_file)
            self._price_cache_file.parent.mkdir(parents=True, exist_ok=True)
        elif os.environ.get('AWS_LAMBDA_FUNCTION_NAME') is not None:
            # /tmp is the only writable path in Lambda
            self._price_cache_file = Path('/tmp/price_cache.json')
        else:
            self._price_cache_file = Path('logs/price_cache.json')
            Path('logs').mkdir(exist_ok=True)

    @property
    def path(self) -> Path:
        return self._price_cache_file

    def load(self) -> CacheData:
        """Load price cache from disk"""
        if not self._price_cache_file.exists():
            return {}
        try:
            with open(self._price_cache_file, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load price cache: {e}")
            return {}

    def save(self, cache: CacheData) -> None:
        """Save price cache to disk"""
        try:
            with open(self._price_cache_file, 'w') as f:
                json.dump(cache, f)
        except IOError as e:
            logger.warning(f"Failed to save price cache: {e}")

    def cleanup(self, cache: CacheData, now: Optional[datetime] = None) -> CacheData:
        """Remove stale entries from price cache, keeping only today and tomorrow"""
        valid_dates = {str(d) for d in today_and_tomorrow_utc(now)}

        for key in list(cache):
            days = cache[key]
            for d in [d for d in days if d not in valid_dates]:
                del days[d]
                logger.debug(f"Removed stale price cache entry for {key} {d}")
            if not days:
                del cache[key]

        return cache

    def get(self, area: str, market: str, currency: str, day: date,
            now: Optional[datetime] = None) -> Optional[List[PriceSlot]]:
        """Get cached prices for one UTC day, or None when absent or incomplete"""
        cache = self.cleanup(self.load(), now)
        rows = cache.get(cache_key(area, market, currency), {}).get(str(day))
        if not rows or len(rows) < MIN_SLOTS_PER_DAY:
            logger.debug(f"price_cache.get cached=false key={cache_key(area, market, currency)} date={day}")
            return None
        logger.debug(f"price_cache.get cached=true key={cache_key(area, market, currency)} date={day} slots={len(rows)}")
        return [PriceSlot(parse_timestamp(ts), float(price)) for ts, price in rows]

    def set(self, area: str, market: str, currency: str, prices: List[PriceSlot],
            now: Optional[datetime] = None) -> None:
        """Cache prices grouped by UTC day (only today and tomorrow are kept)"""
        valid_dates = set(today_and_tomorrow_utc(now))
        by_day: Dict[date, List[PriceSlot]] = defaultdict(list)
        for slot in prices:
            by_day[slot.timestamp.astimezone(timezone.utc).date()].append(slot)

        cache = self.cleanup(self.load(), now)
        entry = cache.setdefault(cache_key(area, market, currency), {})
        for day, slots in sorted(by_day.items()):
            if day not in valid_dates:
                logger.debug(f"price_cache.set cached=false date={day} slots={len(slots)} reason=outside_window")
                continue
            entry[str(day)] = [[s.timestamp.isoformat(), s.price] for s in sorted(slots, key=lambda s: s.timestamp)]
            logger.debug(f"price_cache.set cached=true date={day} slots={len(slots)}")

        if not entry:
            del cache[cache_key(area, market, currency)]
        self.save(cache)

    def load_window(self, area: str, market: str, currency: str,
                    now: Optional[datetime] = None) -> List[PriceSlot]:
        """All cached slots for today and tomorrow, oldest first"""
        slots: List[PriceSlot] = []
        for day in today_and_tomorrow_utc(now):
            slots.extend(self.get(area, market, currency, day, now) or [])
        return slots

    def is_fresh(self, area: str, market: str, currency: str, now: Optional[datetime] = None) -> bool:
        return all(self.get(area, market, currency, day, now) is not None
                   for day in today_and_tomorrow_utc(now))

    async def fetch_cached(self, fetcher: NordpoolFetcher, area: str, market: str, currency: str,
                           now: Optional[datetime] = None) -> List[PriceSlot]:
        """Serve today+tomorrow from the cache, refetching when either day is missing"""
        if not self.is_fresh(area, market, currency, now):
            prices = await fetcher.fetch_prices(area, market, currency, today_and_tomorrow_utc(now))
            self.set(area, market, currency, prices, now)
            cached = self.load_window(area, market, currency, now)
            # Tomorrow is often not published yet; fall back to what was fetched
            return cached if len(cached) >= len(prices) else prices
        return self.load_window(area, market, currency, now)
