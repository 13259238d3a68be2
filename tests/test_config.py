"""
Tests for configuration loading
Run with: uv run pytest tests/test_config.py -v
"""

import pytest

from config import Config
from models import BatteryStrategyParams

ENV_KEYS = ['AREA', 'MARKET', 'CURRENCY', 'NORDPOOL_BASE_URL']


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run from an empty directory with no planner variables set"""
    monkeypatch.chdir(tmp_path)
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def write_config(tmp_path, text):
    path = tmp_path / 'config.yaml'
    path.write_text(text)
    return str(path)


class TestConfigLoading:
    """Test YAML loading, env overrides and validation"""

    def test_loads_yaml(self, tmp_path):
        config = Config(write_config(tmp_path, "area: EE\nepsilon: 1.5\n"))

        assert config['area'] == 'EE'
        assert config.get('epsilon') == 1.5
        assert config.get('missing', 'fallback') == 'fallback'

    def test_missing_area_raises(self, tmp_path):
        with pytest.raises(ValueError, match="area not found in config"):
            Config(write_config(tmp_path, "epsilon: 2\n"))

    def test_empty_file_raises(self, tmp_path):
        with pytest.raises(ValueError):
            Config(write_config(tmp_path, ""))

    def test_non_numeric_strategy_value_raises(self, tmp_path):
        with pytest.raises(ValueError, match="epsilon must be a number"):
            Config(write_config(tmp_path, "area: LV\nepsilon: lots\n"))

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config(str(tmp_path / 'nope.yaml'))

    def test_environment_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv('AREA', 'SE3')
        monkeypatch.setenv('NORDPOOL_BASE_URL', 'http://localhost:8080/api/DayAheadPrices')

        config = Config(write_config(tmp_path, "area: LV\n"))

        assert config['area'] == 'SE3'
        assert config['base_url'] == 'http://localhost:8080/api/DayAheadPrices'

    def test_dotenv_file_loaded(self, tmp_path, monkeypatch):
        # Registered so monkeypatch restores it after load_env writes os.environ
        monkeypatch.setenv('CURRENCY', 'placeholder')
        (tmp_path / '.env').write_text("# comment\nCURRENCY=SEK\n")

        config = Config(write_config(tmp_path, "area: SE4\n"))

        assert config['currency'] == 'SEK'


class TestStrategyParams:
    """Test BatteryStrategyParams construction"""

    def test_defaults(self, tmp_path):
        params = Config(write_config(tmp_path, "area: LV\n")).strategy_params()
        assert params == BatteryStrategyParams()

    def test_values_from_file(self, tmp_path):
        config = Config(write_config(tmp_path, (
            "area: EE\nmarket: DayAhead\ncurrency: EUR\n"
            "max_charge_hours: 2\nmax_discharge_hours: '1.5'\nlast_price_charged: 12\nepsilon: 3\n"
        )))

        params = config.strategy_params()

        assert params == BatteryStrategyParams(area='EE', max_charge_hours=2.0, max_discharge_hours=1.5,
                                               last_price_charged=12.0, epsilon=3.0)

    def test_overrides_skip_none(self, tmp_path):
        config = Config(write_config(tmp_path, "area: LV\nepsilon: 3\n"))

        params = config.strategy_params(area='FI', epsilon=None, max_charge_hours=4.0)

        assert params.area == 'FI'
        assert params.epsilon == 3.0
        assert params.max_charge_hours == 4.0
