"""
Discovery module for camera verification
"""

from .models import DeviceIdentity, DiscoveryRecord, DiscoveryState, FailureInfo, ProbeState, ProbeResult
from .backoff import compute_delay
from .registry import DiscoveryRegistry
from .probe import RtspProbe, is_rtsp_url, parse_status_line
from .categories import CameraCategoryPolicy, is_camera_category
from .controller import DiscoveryController, ControllerOptions, DiscoveryEvent, DiscoveryEventKind

__all__ = [
    'DeviceIdentity', 'DiscoveryRecord', 'DiscoveryState', 'FailureInfo', 'ProbeState', 'ProbeResult',
    'compute_delay', 'DiscoveryRegistry', 'RtspProbe', 'is_rtsp_url', 'parse_status_line',
    'CameraCategoryPolicy', 'is_camera_category',
    'DiscoveryController', 'ControllerOptions', 'DiscoveryEvent', 'DiscoveryEventKind',
]
