"""
Tests for the Nord Pool price client (HTTP mocked with httpx.MockTransport)
Run with: uv run pytest tests/test_price_fetcher.py -v
"""

import json
from datetime import date, datetime, timezone

import httpx
import pytest

from price_fetcher import NordpoolFetcher, PriceFetchError, parse_timestamp, today_and_tomorrow_utc

DAY1 = date(2025, 12, 2)
DAY2 = date(2025, 12, 3)


def day_payload(day: date, prices_per_mwh, area='LV'):
    return {
        "deliveryDateCET": str(day),
        "market": "DayAhead",
        "currency": "EUR",
        "multiAreaEntries": [
            {
                "deliveryStart": f"{day}T{hour:02d}:00:00Z",
                "deliveryEnd": f"{day}T{hour + 1:02d}:00:00Z",
                "entryPerArea": {area: price},
            }
            for hour, price in enumerate(prices_per_mwh)
        ],
    }


def make_fetcher(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NordpoolFetcher(base_url="https://example.test/api/DayAheadPrices", client=client)


class TestHelpers:
    """Test timestamp and date helpers"""

    def test_parse_zulu(self):
        assert parse_timestamp("2025-12-02T23:00:00Z") == datetime(2025, 12, 2, 23, tzinfo=timezone.utc)

    def test_parse_offset_normalized_to_utc(self):
        ts = parse_timestamp("2025-12-03T01:00:00+02:00")
        assert ts == datetime(2025, 12, 2, 23, tzinfo=timezone.utc)
        assert ts.utcoffset().total_seconds() == 0

    def test_today_and_tomorrow(self):
        now = datetime(2025, 12, 2, 23, 30, tzinfo=timezone.utc)
        assert today_and_tomorrow_utc(now) == [DAY1, DAY2]


@pytest.mark.asyncio
class TestFetchPrices:
    """Test fetching and decoding day-ahead prices"""

    async def test_converts_eur_mwh_to_cents_kwh(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, json=day_payload(DAY1, [100.0, 55.5])))

        slots = await fetcher.fetch_prices('LV', 'DayAhead', 'EUR', [DAY1])

        assert [s.price for s in slots] == [10.0, 5.55]
        assert slots[0].timestamp == datetime(2025, 12, 2, tzinfo=timezone.utc)

    async def test_sends_query_and_headers(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=day_payload(DAY1, [1.0]))

        fetcher = make_fetcher(handler)
        await fetcher.fetch_prices('EE', 'DayAhead', 'EUR', [DAY1, DAY2])

        assert len(requests) == 2
        assert dict(requests[0].url.params) == {
            "date": "2025-12-02", "market": "DayAhead", "deliveryArea": "EE", "currency": "EUR",
        }
        assert requests[1].url.params["date"] == "2025-12-03"
        assert requests[0].headers["Accept"] == "application/json"
        assert requests[0].url.path == "/api/DayAheadPrices"

    async def test_results_sorted_across_days(self):
        def handler(request):
            day = date.fromisoformat(request.url.params["date"])
            return httpx.Response(200, json=day_payload(day, [10.0, 20.0]))

        fetcher = make_fetcher(handler)
        slots = await fetcher.fetch_prices('LV', 'DayAhead', 'EUR', [DAY2, DAY1])

        timestamps = [s.timestamp for s in slots]
        assert timestamps == sorted(timestamps)
        assert len(slots) == 4

    async def test_unpublished_day_skipped(self):
        def handler(request):
            if request.url.params["date"] == "2025-12-03":
                return httpx.Response(204)
            return httpx.Response(200, json=day_payload(DAY1, [10.0]))

        fetcher = make_fetcher(handler)
        slots = await fetcher.fetch_prices('LV', 'DayAhead', 'EUR', [DAY1, DAY2])

        assert len(slots) == 1

    async def test_empty_body_skipped(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, content=b""))
        assert await fetcher.fetch_prices('LV', 'DayAhead', 'EUR', [DAY1]) == []

    async def test_other_areas_and_bad_timestamps_skipped(self):
        payload = day_payload(DAY1, [10.0, 20.0])
        payload["multiAreaEntries"].append({"deliveryStart": "2025-12-02T05:00:00Z", "entryPerArea": {"EE": 1.0}})
        payload["multiAreaEntries"].append({"deliveryStart": "not a date", "entryPerArea": {"LV": 1.0}})
        fetcher = make_fetcher(lambda request: httpx.Response(200, json=payload))

        slots = await fetcher.fetch_prices('LV', 'DayAhead', 'EUR', [DAY1])

        assert [s.price for s in slots] == [1.0, 2.0]

    async def test_http_error_status_raises(self):
        fetcher = make_fetcher(lambda request: httpx.Response(500))

        with pytest.raises(PriceFetchError, match="Nord Pool API 2025-12-02: 500"):
            await fetcher.fetch_prices('LV', 'DayAhead', 'EUR', [DAY1])

    async def test_malformed_json_raises(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, content=b"{not json"))

        with pytest.raises(PriceFetchError, match="JSON decode failed"):
            await fetcher.fetch_prices('LV', 'DayAhead', 'EUR', [DAY1])

    async def test_non_object_json_raises(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, content=b"null"))

        with pytest.raises(PriceFetchError, match="Unexpected response for 2025-12-02: NoneType"):
            await fetcher.fetch_prices('LV', 'DayAhead', 'EUR', [DAY1])

    async def test_non_numeric_price_skipped(self):
        payload = day_payload(DAY1, [10.0, "n/a", 30.0])
        fetcher = make_fetcher(lambda request: httpx.Response(200, json=payload))

        slots = await fetcher.fetch_prices('LV', 'DayAhead', 'EUR', [DAY1])

        assert [s.price for s in slots] == [1.0, 3.0]

    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = make_fetcher(handler)

        with pytest.raises(PriceFetchError, match="request failed for 2025-12-02") as exc_info:
            await fetcher.fetch_prices('LV', 'DayAhead', 'EUR', [DAY1])
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    async def test_close(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, json={}))
        await fetcher.close()
        assert fetcher.client.is_closed

    async def test_default_dates_are_today_and_tomorrow(self):
        seen = []

        def handler(request):
            seen.append(request.url.params["date"])
            return httpx.Response(200, json={"multiAreaEntries": []})

        fetcher = make_fetcher(handler)
        await fetcher.fetch_prices('LV', 'DayAhead', 'EUR')

        assert seen == [str(d) for d in today_and_tomorrow_utc()]
