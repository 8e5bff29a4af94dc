"""
Tests for configuration loading and logging setup
"""

import logging

import pytest
import pytz
import yaml

from config_loader import (
    SiteTimeFormatter,
    discovery_options_from_config,
    get_sample_config,
    load_config,
)
from discovery.controller import ControllerOptions


def write_config(tmp_path, data) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


MINIMAL = {
    'cloud': {'base_url': "https://apigw.example-cloud.com", 'access_token': "token"},
    'discovery': {},
}


class TestLoadConfig:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_defaults_applied(self, tmp_path):
        config = load_config(write_config(tmp_path, MINIMAL))

        assert config['discovery']['max_concurrent'] == 2
        assert config['discovery']['debounce_seconds'] == 10
        assert config['discovery']['camera_categories'] == []
        assert config['cloud']['timeout_seconds'] == 15
        assert config['storage']['registry_key'] == "discovery.registry"
        assert config['api']['port'] == 8000
        assert config['site']['timezone'] == "America/New_York"
        assert config['logging']['level'] == "INFO"

    def test_explicit_values_kept(self, tmp_path):
        data = {
            'cloud': {'base_url': "https://cloud", 'ssl_verify': False},
            'discovery': {'max_concurrent': 4, 'probe_all_categories': True},
            'api': {'port': 9100},
        }
        config = load_config(write_config(tmp_path, data))

        assert config['cloud']['ssl_verify'] is False
        assert config['discovery']['max_concurrent'] == 4
        assert config['discovery']['probe_all_categories'] is True
        assert config['api']['port'] == 9100
        assert config['api']['host'] == "0.0.0.0"

    @pytest.mark.parametrize("data", [
        {'discovery': {}},
        {'cloud': {'base_url': "https://cloud"}},
        {'cloud': {}, 'discovery': {}},
        {'cloud': {'base_url': "https://cloud"}, 'discovery': None},
    ])
    def test_missing_required(self, tmp_path, data):
        with pytest.raises(ValueError):
            load_config(write_config(tmp_path, data))

    @pytest.mark.parametrize("discovery", [
        {'max_concurrent': 0},
        {'max_concurrent': "two"},
        {'debounce_seconds': -1},
        {'backoff_max_seconds': -600},
    ])
    def test_invalid_discovery_values(self, tmp_path, discovery):
        data = {'cloud': {'base_url': "https://cloud"}, 'discovery': discovery}
        with pytest.raises(ValueError):
            load_config(write_config(tmp_path, data))

    def test_sample_config_loads(self, tmp_path):
        config = load_config(write_config(tmp_path, get_sample_config()))
        assert config['site']['site_name'] == "Cape House"


class TestDiscoveryOptions:

    def test_seconds_converted_to_milliseconds(self):
        options = discovery_options_from_config(get_sample_config())

        assert options == ControllerOptions(
            max_concurrent=2,
            debounce_ms=10_000,
            backoff_base_ms=15_000,
            backoff_max_ms=600_000,
            probe_timeout=5.0,
        )

    def test_fractional_seconds(self):
        config = get_sample_config()
        config['discovery']['debounce_seconds'] = 0.25
        assert discovery_options_from_config(config).debounce_ms == 250


class TestSiteTimeFormatter:

    def test_site_timezone(self):
        formatter = SiteTimeFormatter("%(asctime)s %(message)s", "Europe/Berlin")
        assert formatter.site_tz == pytz.timezone("Europe/Berlin")

    def test_unknown_timezone_falls_back_to_utc(self):
        formatter = SiteTimeFormatter("%(asctime)s %(message)s", "Mars/Olympus_Mons")
        assert formatter.site_tz == pytz.utc

    def test_formats_in_site_timezone(self):
        formatter = SiteTimeFormatter("%(asctime)s %(message)s", "UTC")
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None)
        record.created = 0

        assert formatter.format(record) == "1970-01-01 00:00:00 UTC hello"
