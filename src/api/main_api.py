"""
Main FastAPI application setup
Local HTTP API for camera discovery status and administration
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Dict, Optional
import logging

# Import modular route factories
from .discovery_routes import create_discovery_routes
from .system_routes import create_system_routes

logger = logging.getLogger(__name__)


class DiscoveryAPI:
    """Local HTTP API for discovery summaries and admin actions"""

    def __init__(self, registry, controller, admin, config: Optional[Dict] = None, cloud_client=None):
        self.registry = registry
        self.controller = controller
        self.admin = admin
        self.config = config or {}
        self.cloud_client = cloud_client
        self.app = FastAPI(
            title="Cloud Camera Bridge",
            description="Local API for camera discovery status, diagnostics and validation control",
            version="1.0.0"
        )
        self._setup_middleware()
        self._setup_routes()

    def _setup_middleware(self):
        origins = self.config.get('api', {}).get('cors_origins', ['*'])
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["*"],
            allow_headers=["*"]
        )

    def _setup_routes(self):
        """Setup FastAPI routes using modular approach"""
        discovery_router = create_discovery_routes(self.registry, self.admin)
        system_router = create_system_routes(self.registry, self.controller, self.cloud_client)

        self.app.include_router(discovery_router)
        self.app.include_router(system_router)
        logger.debug("API routes registered")
