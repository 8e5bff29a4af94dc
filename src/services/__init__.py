"""
Services module for the camera bridge orchestrator and admin actions
"""

from .discovery_admin import DiscoveryAdmin
from .camera_server import CameraBridgeServer

__all__ = ['DiscoveryAdmin', 'CameraBridgeServer']
