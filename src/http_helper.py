# HTTP Helper for Cloud Connections
# SSL-aware aiohttp session configuration for the camera vendor cloud API

import aiohttp
import ssl
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

def create_ssl_context(ssl_verify: bool = True, ca_cert_path: Optional[str] = None) -> ssl.SSLContext:
    """Build the SSL context used for cloud API connections"""
    ssl_context = ssl.create_default_context()

    if not ssl_verify:
        # Development only: self-signed or intercepted endpoints
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        logger.warning("SSL verification disabled for cloud connections")
    elif ca_cert_path:
        ca_path = Path(ca_cert_path)
        if ca_path.exists():
            ssl_context.load_verify_locations(ca_path)
            logger.info(f"Loaded custom CA certificate: {ca_path}")
        else:
            logger.warning(f"CA certificate not found: {ca_path}")

    return ssl_context

def create_cloud_session(
    timeout_seconds: float = 15,
    ssl_verify: bool = True,
    ca_cert_path: Optional[str] = None
) -> aiohttp.ClientSession:
    """
    Create properly configured aiohttp session for cloud API calls
    Stream allocation is called once per probe, so keep the pool small
    """
    connector = aiohttp.TCPConnector(
        ssl=create_ssl_context(ssl_verify, ca_cert_path),
        limit=10,                   # Total connection pool limit
        limit_per_host=4,           # Max connections to the cloud host
        enable_cleanup_closed=True
    )

    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds)
    )
