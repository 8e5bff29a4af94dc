"""
Cloud module for the camera vendor API
"""

from .client import CloudClient, CloudError, StreamEndpointError

__all__ = ['CloudClient', 'CloudError', 'StreamEndpointError']
