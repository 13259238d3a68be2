#!/usr/bin/env python3
"""
Day-Ahead Battery Planner

Fetches Nord Pool day-ahead prices for today and tomorrow and plans when to
charge and discharge a battery using a price-threshold heuristic.
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from rich.console import Console

from config import Config
from exporters import prices_to_csv, schedule_to_json
from models import BatteryStrategyParams, PriceSlot, Schedule
from price_cache import PriceCache
from price_fetcher import DEFAULT_BASE_URL, NordpoolFetcher, PriceFetchError
from scheduler import build_battery_schedule
from text_chart import ChartOptions, FilterMode, build_chart

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Lambda logs to stdout only, local runs also write logs/planner.log"""
    if logging.getLogger().handlers:
        return
    handlers = [logging.StreamHandler()]
    if os.environ.get('AWS_LAMBDA_FUNCTION_NAME') is None:
        os.makedirs('logs', exist_ok=True)
        handlers.append(logging.FileHandler('logs/planner.log'))
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers
    )
    logging.getLogger('httpx').setLevel(logging.WARNING)


class Planner:
    """Wires config, price source and cache around the scheduler"""

    def __init__(self, config_path: str = "config.yaml"):
        self.config = Config(config_path)
        self.price_fetcher = NordpoolFetcher(base_url=self.config.get('base_url', DEFAULT_BASE_URL))
        self.price_cache = PriceCache(self.config.get('cache_file'))
        self.use_cache = bool(self.config.get('use_cache', True))

        logger.debug("Planner initialized")

    async def get_prices(self, params: BatteryStrategyParams, use_cache: Optional[bool] = None) -> Optional[List[PriceSlot]]:
        """Get today+tomorrow prices, through the cache unless disabled"""
        if use_cache is None:
            use_cache = self.use_cache
        try:
            if use_cache:
                prices = await self.price_cache.fetch_cached(
                    self.price_fetcher, params.area, params.market, params.currency)
            else:
                prices = await self.price_fetcher.fetch_prices(params.area, params.market, params.currency)
        except PriceFetchError as e:
            logger.error(f"Failed to get prices: {e}")
            return None

        if not prices:
            logger.error(f"No prices returned for {params.area}")
            return None
        return prices

    def plan(self, prices: List[PriceSlot], params: BatteryStrategyParams,
             now: Optional[datetime] = None) -> Schedule:
        """Build and log the schedule for the slots at or after now"""
        now = now or datetime.now(timezone.utc)
        schedule = build_battery_schedule(prices, params, now)

        if schedule.is_empty:
            logger.info("No future price slots - nothing to schedule")
            return schedule

        logger.info(f"Plan for {params.area}: resolution={schedule.resolution_minutes} min, "
                    f"last price={params.last_price_charged:.2f}, epsilon={params.epsilon:.2f}")
        logger.info(f"Charge windows: {[str(i) for i in schedule.charge_intervals]}")
        logger.info(f"Discharge windows: {[str(i) for i in schedule.discharge_intervals]}")
        return schedule

    async def run_once(self, params: Optional[BatteryStrategyParams] = None,
                       use_cache: Optional[bool] = None) -> Optional[Tuple[List[PriceSlot], Schedule]]:
        """Fetch prices and plan once"""
        params = params or self.config.strategy_params()
        prices = await self.get_prices(params, use_cache)
        if prices is None:
            return None
        return prices, self.plan(prices, params)

    async def close(self):
        await self.price_fetcher.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Day-Ahead Battery Planner - plans battery charging/discharging from Nord Pool day-ahead prices"
    )
    parser.add_argument("--config", default="config.yaml", help="Path to config YAML (default: config.yaml)")
    parser.add_argument("--area", help="Nord Pool delivery area, e.g. LV, EE, SE3")
    parser.add_argument("--market", help="Market name (default from config: DayAhead)")
    parser.add_argument("--currency", help="Currency code, e.g. EUR")
    parser.add_argument("--max-charge-hours", type=float, help="Charge budget in hours")
    parser.add_argument("--max-discharge-hours", type=float, help="Discharge budget in hours")
    parser.add_argument("--last-price", type=float, dest="last_price_charged",
                        help="Price of the last charge in c/kWh")
    parser.add_argument("--epsilon", type=float, help="Price margin in c/kWh")
    parser.add_argument("--format", choices=["chart", "json", "csv"], default="chart",
                        help="Output: text chart, JSON schedule or CSV prices")
    parser.add_argument("--filter", choices=[m.value for m in FilterMode], default=FilterMode.ALL.value,
                        help="Chart filter (all, charge, discharge)")
    parser.add_argument("--no-cache", action="store_true", help="Always fetch live prices")
    parser.add_argument("--no-color", action="store_true", help="Plain chart without colours")
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        planner = Planner(args.config)
    except (OSError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        params = planner.config.strategy_params(
            area=args.area, market=args.market, currency=args.currency,
            max_charge_hours=args.max_charge_hours, max_discharge_hours=args.max_discharge_hours,
            last_price_charged=args.last_price_charged, epsilon=args.epsilon,
        )
        result = await planner.run_once(params, use_cache=False if args.no_cache else None)
    finally:
        await planner.close()

    if result is None:
        return 1
    prices, schedule = result

    console = Console(highlight=False, emoji=False)
    if args.format == "json":
        console.print(schedule_to_json(schedule), markup=False, soft_wrap=True)
    elif args.format == "csv":
        sys.stdout.write(prices_to_csv(prices))
    else:
        colorize = not args.no_color and console.is_terminal
        chart = build_chart(prices, schedule, datetime.now(timezone.utc), FilterMode(args.filter),
                            ChartOptions(colorize=colorize))
        console.print(chart, markup=colorize, end="", soft_wrap=True)
    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
