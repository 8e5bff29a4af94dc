"""
Cloud Camera Bridge - Main Entry Point
"""

import argparse
import asyncio
import logging
import os
import signal
import sys

import yaml

from config_loader import discovery_options_from_config, get_sample_config, load_config
from services.camera_server import CameraBridgeServer

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cloud camera discovery and verification bridge")
    parser.add_argument(
        "--config",
        default=os.environ.get('CONFIG_FILE', 'config/config.yaml'),
        help="Path to the YAML configuration (default: $CONFIG_FILE or config/config.yaml)"
    )
    parser.add_argument("--check-config", action="store_true",
                        help="Validate the configuration and exit")
    parser.add_argument("--sample-config", action="store_true",
                        help="Print a sample configuration and exit")
    return parser.parse_args(argv)


def check_config(config_path: str) -> int:
    """Load and validate a config file, printing the effective discovery limits"""
    try:
        config = load_config(config_path)
        options = discovery_options_from_config(config)
        options.validate()
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Configuration invalid: {e}", file=sys.stderr)
        return 1

    print(f"Configuration OK: {config_path}")
    print(f"  cloud:     {config['cloud']['base_url']}")
    print(f"  discovery: max_concurrent={options.max_concurrent}, debounce={options.debounce_ms}ms, "
          f"backoff={options.backoff_base_ms}-{options.backoff_max_ms}ms, probe_timeout={options.probe_timeout}s")
    print(f"  storage:   {config['storage']['path']}")
    return 0


async def main(config_path: str) -> int:
    """Run the bridge until a signal or a fatal error stops it"""
    server = None
    loop = asyncio.get_running_loop()

    def request_shutdown(signum):
        logger.info(f"Received signal {signum}, shutting down...")
        if server:
            asyncio.ensure_future(server.stop())

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, request_shutdown, signum)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    try:
        logger.info(f"Using configuration file: {config_path}")
        server = CameraBridgeServer(config_path=config_path)
        await server.start()

    except Exception as e:
        logger.error(f"Server failed: {e}")
        return 1
    finally:
        if server and server.running:
            await server.stop()

    return 0


def run(argv=None):
    """Console script entry point"""
    args = parse_args(argv)

    if args.sample_config:
        print(yaml.safe_dump(get_sample_config(), sort_keys=False))
        sys.exit(0)

    if args.check_config:
        sys.exit(check_config(args.config))

    try:
        sys.exit(asyncio.run(main(args.config)))
    except KeyboardInterrupt:
        print("\nServer stopped by user")
        sys.exit(0)


if __name__ == "__main__":
    run()
