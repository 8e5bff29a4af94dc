"""
Camera vendor cloud client
Enumerates account devices and allocates short-lived RTSP stream URLs
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from discovery.models import DeviceIdentity
from http_helper import create_cloud_session

logger = logging.getLogger(__name__)


class CloudError(Exception):
    """Cloud API request failed or returned an unsuccessful response"""


class StreamEndpointError(CloudError):
    """A stream URL could not be allocated for a device"""


class CloudClient:
    """Thin async wrapper around the vendor cloud REST API"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config['cloud']

        self.base_url = self.config['base_url'].rstrip('/')
        self.access_token = self.config.get('access_token')
        self.timeout_seconds = self.config.get('timeout_seconds', 15)
        self.ssl_verify = self.config.get('ssl_verify', True)
        self.ca_cert_path = self.config.get('ca_cert_path')

        self.session: Optional[aiohttp.ClientSession] = None
        self.request_count = 0
        self.error_count = 0

    @property
    def authenticated(self) -> bool:
        return bool(self.access_token)

    async def start(self):
        """Open the HTTP session"""
        if self.session is None:
            self.session = create_cloud_session(self.timeout_seconds, self.ssl_verify, self.ca_cert_path)
        if not self.authenticated:
            logger.warning("No cloud access token configured - stream allocation will fail")
        logger.info(f"Cloud client ready for {self.base_url}")

    async def stop(self):
        """Close the HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None
        logger.info("Cloud client stopped")

    async def _request(self, method: str, path: str, params: Optional[Dict] = None,
                       payload: Optional[Dict] = None) -> Any:
        if self.session is None:
            raise CloudError("Cloud client not started")
        if not self.authenticated:
            raise CloudError("Not authenticated with the camera cloud.")

        url = f"{self.base_url}{path}"
        headers = {'Authorization': f"Bearer {self.access_token}"}
        self.request_count += 1

        try:
            async with self.session.request(method, url, params=params, json=payload, headers=headers) as response:
                if response.status != 200:
                    self.error_count += 1
                    raise CloudError(f"HTTP {response.status} for {method} {path}")
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self.error_count += 1
            raise CloudError(f"{method} {path} failed: {e}") from e

        if not isinstance(body, dict) or not body.get('success'):
            self.error_count += 1
            message = body.get('msg') if isinstance(body, dict) else None
            raise CloudError(f"{method} {path} unsuccessful: {message or 'unknown error'}")

        return body.get('result')

    async def get_stream_endpoint(self, device_id: str) -> str:
        """
        Allocate a fresh RTSP URL for one device.
        URLs expire within seconds, so callers must not cache them.
        """
        try:
            result = await self._request(
                "POST",
                f"/v1.0/m/ipc/{device_id}/stream/actions/allocate",
                payload={'type': 'rtsp'}
            )
        except CloudError as e:
            raise StreamEndpointError(str(e)) from e

        url = result.get('url') if isinstance(result, dict) else None
        if not url:
            raise StreamEndpointError(f"Failed to retrieve RTSP URL for camera {device_id}")
        return url

    async def list_devices(self) -> List[Tuple[DeviceIdentity, Optional[bool]]]:
        """Return (identity, online) for every device in the account's first home"""
        homes = await self._request("GET", "/v1.0/m/life/users/homes")
        if not homes:
            logger.info("Cloud account has no homes")
            return []
        if not isinstance(homes, list) or not isinstance(homes[0], dict):
            self.error_count += 1
            raise CloudError(f"Unexpected home list payload: {type(homes).__name__}")

        home_id = homes[0].get('ownerId')
        if not home_id:
            return []

        devices = await self._request("GET", "/v1.0/m/life/ha/home/devices", params={'homeId': home_id})
        if devices is not None and not isinstance(devices, list):
            self.error_count += 1
            raise CloudError(f"Unexpected device list payload: {type(devices).__name__}")

        identities = []
        for raw in devices or []:
            parsed = self._parse_device(raw)
            if parsed:
                identities.append(parsed)

        logger.info(f"[SYNC] Cloud reported {len(identities)} devices")
        return identities

    @staticmethod
    def _parse_device(raw: Any) -> Optional[Tuple[DeviceIdentity, Optional[bool]]]:
        if not isinstance(raw, dict):
            return None

        device_id = raw.get('id') or raw.get('devId')
        if not device_id:
            logger.debug(f"Skipping cloud device without id: {raw.get('name')}")
            return None

        identity = DeviceIdentity(
            device_id=str(device_id),
            name=raw.get('name') or "Unknown device",
            category=raw.get('category') or "",
            product_id=raw.get('product_id') or raw.get('productId'),
            icon=raw.get('icon'),
        )
        online = raw.get('online')
        return identity, (bool(online) if online is not None else None)
