"""Nord Pool day-ahead price client"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional

import httpx

from models import PriceSlot

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://dataportal-api.nordpoolgroup.com/api/DayAheadPrices"
USER_AGENT = "dayahead-planner/1.0"


class PriceFetchError(Exception):
    """Raised when day-ahead prices cannot be retrieved or decoded"""


def today_and_tomorrow_utc(now: Optional[datetime] = None) -> List[date]:
    """UTC calendar dates for today and tomorrow"""
    today = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).date()
    return [today, today + timedelta(days=1)]


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 instant (``Z`` suffix allowed) into an aware UTC datetime"""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class NordpoolFetcher:
    """Fetches day-ahead prices from the Nord Pool data portal.

    Prices arrive in <currency>/MWh and are returned in cents/kWh.
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 10.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch_prices(self, area: str, market: str, currency: str,
                           dates: Optional[Iterable[date]] = None) -> List[PriceSlot]:
        """Fetch prices for each date (default today and tomorrow), sorted by time"""
        if dates is None:
            dates = today_and_tomorrow_utc()

        slots: List[PriceSlot] = []
        for day in dates:
            slots.extend(await self._fetch_day(day, area, market, currency))

        slots.sort(key=lambda s: s.timestamp)
        logger.debug(f"price_fetcher.fetch_prices area={area} market={market} currency={currency} slots={len(slots)}")
        return slots

    async def _fetch_day(self, day: date, area: str, market: str, currency: str) -> List[PriceSlot]:
        day_str = day.isoformat()
        params = {"date": day_str, "market": market, "deliveryArea": area, "currency": currency}
        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}

        try:
            response = await self.client.get(self.base_url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise PriceFetchError(f"request failed for {day_str}: {e}") from e

        if response.status_code >= 300:
            raise PriceFetchError(f"Nord Pool API {day_str}: {response.status_code} {response.reason_phrase}")

        if response.status_code == 204 or not response.content.strip():
            # Not published yet (tomorrow before the auction closes)
            logger.info(f"No prices published yet for {day_str} ({area})")
            return []

        try:
            payload = response.json()
        except ValueError as e:
            raise PriceFetchError(f"JSON decode failed for {day_str}: {e}") from e
        if not isinstance(payload, dict):
            raise PriceFetchError(f"Unexpected response for {day_str}: {type(payload).__name__}")

        return self.parse_entries(payload, area)

    @staticmethod
    def parse_entries(payload: dict, area: str) -> List[PriceSlot]:
        """Extract one area's slots from a DayAheadPrices response"""
        slots = []
        for entry in payload.get("multiAreaEntries") or []:
            price_per_mwh = (entry.get("entryPerArea") or {}).get(area)
            if price_per_mwh is None:
                continue
            try:
                ts = parse_timestamp(entry["deliveryStart"])
                # <currency>/MWh -> cents/kWh
                price = float(price_per_mwh) / 10.0
            except (KeyError, TypeError, ValueError):
                continue
            slots.append(PriceSlot(timestamp=ts, price=price))
        return slots

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()
