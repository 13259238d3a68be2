import os
from typing import Dict

import yaml

from models import BatteryStrategyParams

STRATEGY_KEYS = ["max_charge_hours", "max_discharge_hours", "last_price_charged", "epsilon"]


def load_env() -> None:
    env_path = '.env'
    if os.path.exists(env_path):
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, value = line.split('=', 1)
                    os.environ[key] = value


class Config:
    def __init__(self, config_path: str):
        self.config_path = config_path
        load_env()
        self.data = self.load_config()
        self.validate_config()

    def load_config(self) -> Dict:
        with open(self.config_path) as f:
            data = yaml.safe_load(f) or {}
        # Override with environment variables if available
        env_keys = ['area', 'market', 'currency', 'base_url']
        for key in env_keys:
            env_key = 'NORDPOOL_BASE_URL' if key == 'base_url' else key.upper()
            if env_key in os.environ:
                data[key] = os.environ[env_key]
        return data

    def validate_config(self) -> None:
        required_keys = ["area"]
        for key in required_keys:
            if key not in self.data:
                raise ValueError(f"{key} not found in config")
        for key in STRATEGY_KEYS:
            if key in self.data:
                try:
                    float(self.data[key])
                except (TypeError, ValueError):
                    raise ValueError(f"{key} must be a number, got {self.data[key]!r}")

    def strategy_params(self, **overrides) -> BatteryStrategyParams:
        """Build strategy params from config, with non-None overrides taking precedence"""
        defaults = BatteryStrategyParams()
        values = {
            'area': str(self.get('area', defaults.area)),
            'market': str(self.get('market', defaults.market)),
            'currency': str(self.get('currency', defaults.currency)),
        }
        for key in STRATEGY_KEYS:
            values[key] = float(self.get(key, getattr(defaults, key)))
        values.update({k: v for k, v in overrides.items() if v is not None})
        return BatteryStrategyParams(**values)

    def __getitem__(self, key):
        return self.data[key]

    def get(self, key, default=None):
        return self.data.get(key, default)
