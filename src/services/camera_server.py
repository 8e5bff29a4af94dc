"""
Camera Bridge Server - Main orchestrator for all services
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple
import uvicorn

# Local imports
from config_loader import load_config, setup_logging, discovery_options_from_config
from storage import JsonFileStore, KeyValueStore
from discovery.categories import CameraCategoryPolicy
from discovery.controller import DiscoveryController, DiscoveryEventKind
from discovery.diagnostics import format_summary, redact_device_id, summarize
from discovery.models import DeviceIdentity, DiscoveryState
from discovery.probe import RtspProbe
from discovery.registry import DiscoveryRegistry
from cloud.client import CloudClient, CloudError
from api.main_api import DiscoveryAPI
from services.discovery_admin import DiscoveryAdmin

logger = logging.getLogger(__name__)


class CameraBridgeServer:
    """Main server wiring cloud enumeration, discovery verification and the local API"""

    def __init__(self, config_path: str = "config/config.yaml", config: Optional[Dict] = None,
                 store: Optional[KeyValueStore] = None, cloud_client: Optional[CloudClient] = None):
        if config is None:
            config = load_config(config_path)
            setup_logging(config)
        self.config = config

        discovery_config = self.config['discovery']
        storage_config = self.config['storage']

        self.store = store if store is not None else JsonFileStore(storage_config['path'])
        self.registry = DiscoveryRegistry(self.store, storage_config['registry_key'])
        self.probe = RtspProbe(
            default_timeout=discovery_config['probe_timeout_seconds'],
            verify_tls=discovery_config['probe_verify_tls']
        )
        self.cloud = cloud_client if cloud_client is not None else CloudClient(self.config)

        self.controller = DiscoveryController(
            self.registry,
            self.probe,
            self.cloud.get_stream_endpoint,
            discovery_options_from_config(self.config),
            eligibility=CameraCategoryPolicy(
                discovery_config['camera_categories'],
                discovery_config['probe_all_categories']
            )
        )

        # Devices currently exposed to the host framework
        self.exposed_devices: Dict[str, DeviceIdentity] = {}

        self.admin = DiscoveryAdmin(
            self.registry,
            self.controller,
            on_exposed=self.expose_device,
            on_unexposed=self.unexpose_device
        )
        self.api = DiscoveryAPI(self.registry, self.controller, self.admin, self.config, self.cloud)

        self.running = False
        self.tasks: List[asyncio.Task] = []

    async def start(self):
        """Start all server services and serve the API until stopped"""
        logger.info("Starting Cloud Camera Bridge...")

        try:
            await self.start_services()
            await self._start_api_server()

        except Exception as e:
            logger.error(f"Server startup failed: {e}")
            await self.stop()
            raise

    async def start_services(self):
        """Start the cloud client, run the initial sync and launch background tasks"""
        await self.cloud.start()

        self._restore_exposed_devices()
        await self.sync_devices(initial=True)

        self.running = True

        self.tasks = [
            asyncio.create_task(self._device_sync_service()),
            asyncio.create_task(self._retry_service()),
            asyncio.create_task(self._event_service())
        ]
        logger.info(f"All services started successfully ({len(self.tasks)} background tasks)")

    async def stop(self):
        """Stop all server services gracefully"""
        logger.info("Stopping server...")
        self.running = False

        for task in self.tasks:
            task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks = []

        await self.controller.close()
        await self.cloud.stop()
        logger.info(f"Server stopped - {format_summary(summarize(self.registry.get_records()))}")

    # ================== DEVICE LIFECYCLE ==================

    def _restore_exposed_devices(self):
        """Re-expose devices that were verified or force confirmed before restart"""
        for record in self.registry.get_records():
            if record.state in (DiscoveryState.VERIFIED, DiscoveryState.UNVERIFIED):
                self.exposed_devices[record.device_id] = record.identity
        logger.info(f"Restored {len(self.exposed_devices)} exposed devices from storage")

    def expose_device(self, device_id: str):
        record = self.registry.get_record(device_id)
        if record is None or device_id in self.exposed_devices:
            return
        self.exposed_devices[device_id] = record.identity
        logger.info(f"[EXPOSED] {record.identity.name} ({redact_device_id(device_id)}) is now available")

    def unexpose_device(self, device_id: str):
        identity = self.exposed_devices.pop(device_id, None)
        if identity:
            logger.info(f"[REMOVED] {identity.name} ({redact_device_id(device_id)}) is no longer exposed")

    def handle_online_change(self, device_id: str, online: bool):
        """Apply an online/offline transition reported by the cloud"""
        self.registry.update_online(device_id, online)
        if online:
            self.controller.schedule_probe(device_id)

    def handle_device_deleted(self, device_id: str):
        """Apply a permanent deletion reported by the cloud"""
        self.registry.remove_record(device_id)
        self.unexpose_device(device_id)

    async def sync_devices(self, initial: bool = False) -> Optional[int]:
        """
        Pull the account's device list into the registry.
        Returns the number of devices reported, or None if the cloud call failed.
        """
        try:
            devices = await self.cloud.list_devices()
        except CloudError as e:
            logger.error(f"[SYNC] Device enumeration failed, keeping previous registry: {e}")
            return None

        self._apply_device_list(devices, initial)
        return len(devices)

    def _apply_device_list(self, devices: List[Tuple[DeviceIdentity, Optional[bool]]], initial: bool):
        reported = set()
        came_online = []
        new_devices = []

        for identity, online in devices:
            reported.add(identity.device_id)
            previous = self.registry.get_record(identity.device_id)
            self.registry.upsert_candidate(identity, online)

            if previous is None:
                new_devices.append(identity.device_id)
            elif previous.online is False and online:
                came_online.append(identity.device_id)
            if identity.device_id in self.exposed_devices:
                self.exposed_devices[identity.device_id] = identity

        # An empty answer is more likely a cloud glitch than a wiped account
        if reported:
            for record in self.registry.get_records():
                if record.device_id not in reported:
                    logger.info(f"[SYNC] {record.identity.name} ({redact_device_id(record.device_id)}) no longer in account")
                    self.handle_device_deleted(record.device_id)
        elif len(self.registry):
            logger.warning("[SYNC] Cloud returned no devices - skipping removal of known records")

        if initial:
            for record in self.registry.get_records():
                if record.online:
                    self.controller.schedule_probe(record.device_id, immediate=True)
        else:
            for device_id in came_online:
                self.handle_online_change(device_id, True)
            for device_id in new_devices:
                self.controller.schedule_probe(device_id)

        logger.info(f"[SYNC] {format_summary(summarize(self.registry.get_records()))}")

    # ================== BACKGROUND SERVICES ==================

    async def _device_sync_service(self):
        """Background service for periodic device enumeration"""
        sync_interval = self.config['cloud']['device_sync_minutes'] * 60

        logger.info(f"Device sync service started (every {sync_interval/60} minutes)")

        while self.running:
            try:
                await asyncio.sleep(sync_interval)
                if not self.running:
                    break

                logger.info("[REFRESH] Running periodic device sync...")
                await self.sync_devices()

            except Exception as e:
                logger.error(f"Device sync service error: {e}")

    async def _retry_service(self):
        """Background sweep re-scheduling unverified devices, deferred by their backoff"""
        retry_interval = self.config['discovery']['retry_interval_minutes'] * 60

        logger.info(f"Retry service started (every {retry_interval/60} minutes)")

        while self.running:
            try:
                await asyncio.sleep(retry_interval)
                if not self.running:
                    break

                scheduled = 0
                for record in self.registry.get_records():
                    if record.state == DiscoveryState.VERIFIED:
                        continue
                    if self.controller.schedule_probe(record.device_id):
                        scheduled += 1
                logger.info(f"[RETRY] Periodic sweep scheduled {scheduled} probes")

            except Exception as e:
                logger.error(f"Retry service error: {e}")

    async def _event_service(self):
        """Consume controller events and expose newly verified devices"""
        while self.running:
            try:
                event = await self.controller.events.get()
                if event.kind == DiscoveryEventKind.VERIFIED:
                    self.expose_device(event.device_id)
                elif event.kind == DiscoveryEventKind.PROBE_FAILED:
                    logger.debug(f"Probe failure for {redact_device_id(event.device_id)}: {event.failure.message}")

            except Exception as e:
                logger.error(f"Event service error: {e}")

    async def _start_api_server(self):
        """Start the FastAPI server"""
        config = uvicorn.Config(
            self.api.app,
            host=self.config['api']['host'],
            port=self.config['api']['port'],
            log_level="info",
            access_log=False  # We handle our own logging
        )

        server = uvicorn.Server(config)

        logger.info(f"Starting API server on {self.config['api']['host']}:{self.config['api']['port']}")
        logger.info(f"API documentation: http://localhost:{self.config['api']['port']}/docs")

        await server.serve()
