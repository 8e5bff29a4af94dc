"""
ASGI entry point for uvicorn
This module exposes the FastAPI app for use with uvicorn command line
"""

import logging
import os
from pathlib import Path

from services.camera_server import CameraBridgeServer

# Ensure logs directory exists
Path("logs").mkdir(exist_ok=True)

logger = logging.getLogger(__name__)

# Build the server (loads configuration and sets up logging)
logger.info("Initializing application components...")
server = CameraBridgeServer(config_path=os.environ.get('CONFIG_FILE', 'config/config.yaml'))

# Expose the FastAPI app for uvicorn
app = server.api.app

# Lifespan events for proper initialization and cleanup
@app.on_event("startup")
async def startup_event():
    """Start the cloud client and the discovery background services"""
    logger.info("Starting up application...")
    await server.start_services()
    logger.info("Discovery services initialized")

@app.on_event("shutdown")
async def shutdown_event():
    """Clean up resources on shutdown"""
    logger.info("Shutting down application...")
    await server.stop()
    logger.info("Application shut down complete")

logger.info("ASGI app ready for uvicorn")
