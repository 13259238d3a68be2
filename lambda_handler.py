"""
AWS Lambda handler for the Day-Ahead Battery Planner

Serves browser clients: takes strategy params in the event, fetches live
prices and returns the schedule, the prices and a rendered text chart as JSON.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from models import BatteryStrategyParams
from price_fetcher import DEFAULT_BASE_URL, NordpoolFetcher, PriceFetchError
from scheduler import build_battery_schedule
from text_chart import ChartOptions, FilterMode, build_chart

# Configure logging for CloudWatch - let CloudWatch handle timestamps
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Remove default handlers
for handler in list(logger.handlers):
    logger.removeHandler(handler)

handler = logging.StreamHandler()
formatter = logging.Formatter('%(levelname)s %(message)s')
handler.setFormatter(formatter)
logger.addHandler(handler)

# Suppress noisy loggers
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('asyncio').setLevel(logging.WARNING)


def params_from_event(event: Dict[str, Any]) -> BatteryStrategyParams:
    """Strategy params from the event; missing, empty or zero values take the defaults"""
    defaults = BatteryStrategyParams()

    def text(key: str, default: str) -> str:
        value = event.get(key)
        return str(value) if value else default

    def number(key: str, default: float) -> float:
        value = event.get(key)
        if value is None or value == "":
            return default
        value = float(value)
        return value if value != 0 else default

    return BatteryStrategyParams(
        area=text('area', defaults.area),
        market=text('market', defaults.market),
        currency=text('currency', defaults.currency),
        max_charge_hours=number('maxChargeHours', defaults.max_charge_hours),
        max_discharge_hours=number('maxDischargeHours', defaults.max_discharge_hours),
        last_price_charged=number('lastPriceCharged', defaults.last_price_charged),
        epsilon=number('epsilon', defaults.epsilon),
    )


async def run_plan(params: BatteryStrategyParams, base_url: str) -> dict:
    """
    Async runner - must be called within event loop so httpx can create
    its connection pool properly.
    """
    fetcher = NordpoolFetcher(base_url=base_url)
    try:
        prices = await fetcher.fetch_prices(params.area, params.market, params.currency)
    finally:
        await fetcher.close()

    now = datetime.now(timezone.utc)
    schedule = build_battery_schedule(prices, params, now)
    chart = build_chart(prices, schedule, now, FilterMode.ALL, ChartOptions(colorize=True))

    return {
        'schedule': schedule.to_dict(),
        'prices': [p.to_dict() for p in prices],
        'chart': chart,
    }


def lambda_handler(event, context):
    """
    AWS Lambda entry point for planning.

    Event parameters (all optional):
    - area, market, currency: Nord Pool selection (default LV / DayAhead / EUR)
    - maxChargeHours, maxDischargeHours: hour budgets (default 3)
    - lastPriceCharged, epsilon: c/kWh (default 15 / 2)
    - baseURL: price API base, e.g. a CORS proxy
    """
    event = event or {}
    logger.info(f"Lambda invoked with event: {json.dumps(event)}")

    try:
        params = params_from_event(event)
    except (TypeError, ValueError) as e:
        logger.error(f"Invalid parameters: {e}")
        return {
            'statusCode': 400,
            'body': json.dumps({'success': False, 'error': str(e)})
        }

    base_url = event.get('baseURL') or DEFAULT_BASE_URL

    try:
        result = asyncio.run(run_plan(params, base_url))
        logger.info(f"Lambda completed: {len(result['prices'])} prices, "
                    f"{len(result['schedule']['charge_slots'])} charge / "
                    f"{len(result['schedule']['discharge_slots'])} discharge slots")
        return {
            'statusCode': 200,
            'body': json.dumps(result)
        }

    except PriceFetchError as e:
        logger.error(f"Price fetch failed: {e}")
        return {
            'statusCode': 502,
            'body': json.dumps({'success': False, 'error': str(e)})
        }

    except Exception as e:
        logger.exception(f"Lambda execution failed: {e}")
        return {
            'statusCode': 500,
            'body': json.dumps({
                'success': False,
                'error': str(e),
                'error_type': type(e).__name__
            })
        }


# For local testing
if __name__ == "__main__":
    test_event = {}
    result = lambda_handler(test_event, None)
    print(json.dumps(result, indent=2))
