"""
Configuration loader for the Cloud Camera Bridge
Loads and validates configuration from YAML files
"""

import yaml
import logging
from typing import Dict, Any
from pathlib import Path
from datetime import datetime
import pytz

from discovery.controller import ControllerOptions

logger = logging.getLogger(__name__)

def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file with validation
    """
    try:
        config_file = Path(config_path)
        if not config_file.exists():
            logger.error(f"Configuration file not found: {config_path}")
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_file, 'r') as f:
            config = yaml.safe_load(f) or {}

        # Validate required sections
        _validate_config(config)

        # Apply defaults
        config = _apply_defaults(config)

        logger.info(f"Configuration loaded from {config_path}")
        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise

def _validate_config(config: Dict) -> None:
    """Validate that required configuration sections exist"""
    required_sections = ['cloud', 'discovery']

    for section in required_sections:
        if section not in config or config[section] is None:
            raise ValueError(f"Missing required configuration section: {section}")

    # Validate cloud section
    cloud = config['cloud']
    if not cloud.get('base_url'):
        raise ValueError("cloud.base_url is required")
    if not cloud['base_url'].startswith('https://'):
        logger.warning("cloud.base_url does not use https:// - access tokens will be sent in clear text")

    # Validate discovery section
    discovery = config['discovery']
    max_concurrent = discovery.get('max_concurrent', 2)
    if not isinstance(max_concurrent, int) or max_concurrent < 1:
        raise ValueError("discovery.max_concurrent must be a positive integer")

    for key in ('debounce_seconds', 'backoff_base_seconds', 'backoff_max_seconds', 'probe_timeout_seconds'):
        if key in discovery and discovery[key] < 0:
            raise ValueError(f"discovery.{key} must not be negative")

def _apply_defaults(config: Dict) -> Dict:
    """Apply default values to configuration"""

    # Site defaults
    if 'site' not in config:
        config['site'] = {}
    site_defaults = {
        'site_id': 'home',
        'site_name': 'Home',
        'timezone': 'America/New_York'
    }
    for key, default_value in site_defaults.items():
        if key not in config['site']:
            config['site'][key] = default_value

    # Cloud defaults
    cloud_defaults = {
        'access_token': None,
        'timeout_seconds': 15,
        'ssl_verify': True,
        'ca_cert_path': None,
        'device_sync_minutes': 30
    }
    for key, default_value in cloud_defaults.items():
        if key not in config['cloud']:
            config['cloud'][key] = default_value

    # Discovery defaults
    discovery_defaults = {
        'max_concurrent': 2,
        'debounce_seconds': 10,
        'backoff_base_seconds': 15,
        'backoff_max_seconds': 600,
        'probe_timeout_seconds': 5,
        'probe_verify_tls': True,
        'camera_categories': [],
        'probe_all_categories': False,
        'retry_interval_minutes': 15
    }
    for key, default_value in discovery_defaults.items():
        if key not in config['discovery']:
            config['discovery'][key] = default_value

    # Storage defaults
    if 'storage' not in config:
        config['storage'] = {}
    storage_defaults = {
        'path': 'data/discovery.json',
        'registry_key': 'discovery.registry'
    }
    for key, default_value in storage_defaults.items():
        if key not in config['storage']:
            config['storage'][key] = default_value

    # API defaults
    if 'api' not in config:
        config['api'] = {}
    api_defaults = {
        'host': '0.0.0.0',
        'port': 8000,
        'cors_origins': ['*']
    }
    for key, default_value in api_defaults.items():
        if key not in config['api']:
            config['api'][key] = default_value

    # Logging defaults
    if 'logging' not in config:
        config['logging'] = {}
    logging_defaults = {
        'level': 'INFO',
        'file': 'logs/camera_bridge.log',
        'console_output': True
    }
    for key, default_value in logging_defaults.items():
        if key not in config['logging']:
            config['logging'][key] = default_value

    return config

def discovery_options_from_config(config: Dict) -> ControllerOptions:
    """Convert the seconds-based discovery section into controller options"""
    discovery = config['discovery']
    return ControllerOptions(
        max_concurrent=discovery['max_concurrent'],
        debounce_ms=int(discovery['debounce_seconds'] * 1000),
        backoff_base_ms=int(discovery['backoff_base_seconds'] * 1000),
        backoff_max_ms=int(discovery['backoff_max_seconds'] * 1000),
        probe_timeout=float(discovery['probe_timeout_seconds'])
    )


class SiteTimeFormatter(logging.Formatter):
    """Formatter that renders timestamps in the site's local timezone"""

    def __init__(self, fmt=None, timezone_name: str = 'America/New_York'):
        super().__init__(fmt)
        try:
            self.site_tz = pytz.timezone(timezone_name)
        except pytz.UnknownTimeZoneError:
            logger.warning(f"Unknown timezone {timezone_name}, using UTC for log timestamps")
            self.site_tz = pytz.utc

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.site_tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            # Default format: YYYY-MM-DD HH:MM:SS TZ
            return dt.strftime('%Y-%m-%d %H:%M:%S %Z')

def setup_logging(config: Dict) -> None:
    """Setup logging based on configuration with site-local timestamps"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')
    timezone_name = config.get('site', {}).get('timezone', 'America/New_York')

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = SiteTimeFormatter(log_format, timezone_name)

    # Setup logging
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=log_format,
        handlers=[]
    )
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Console handler
    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # File handler
    log_file = log_config.get('file')
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logger.info(f"Logging configured ({timezone_name} timestamps): level={level}, console={log_config.get('console_output', True)}, file={log_file}")

def get_sample_config() -> Dict:
    """Return a sample configuration for reference"""
    return {
        "site": {
            "site_id": "cape_home",
            "site_name": "Cape House",
            "timezone": "America/New_York"
        },
        "cloud": {
            "base_url": "https://apigw.example-cloud.com",
            "access_token": "your-access-token-here",
            "timeout_seconds": 15,
            "ssl_verify": True,
            "device_sync_minutes": 30
        },
        "discovery": {
            "max_concurrent": 2,
            "debounce_seconds": 10,
            "backoff_base_seconds": 15,
            "backoff_max_seconds": 600,
            "probe_timeout_seconds": 5,
            "probe_verify_tls": True,
            "camera_categories": [],
            "probe_all_categories": False,
            "retry_interval_minutes": 15
        },
        "storage": {
            "path": "data/discovery.json",
            "registry_key": "discovery.registry"
        },
        "api": {
            "host": "0.0.0.0",
            "port": 8000,
            "cors_origins": ["*"]
        },
        "logging": {
            "level": "INFO",
            "file": "logs/camera_bridge.log",
            "console_output": True
        }
    }
