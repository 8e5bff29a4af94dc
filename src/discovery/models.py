"""
Discovery data structures and models
"""

from enum import Enum
from typing import Any, Dict, Optional
from dataclasses import dataclass, field


class DiscoveryState(str, Enum):
    """Exposure state of a discovered camera"""
    CANDIDATE = "candidate"
    VERIFIED = "verified"
    UNVERIFIED = "unverified"


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


def _require_mapping(data: Any, type_name: str) -> None:
    if not isinstance(data, dict):
        raise TypeError(f"{type_name} data must be a mapping, got {type(data).__name__}")


@dataclass(frozen=True)
class DeviceIdentity:
    """Normalized descriptor supplied by the cloud enumeration"""
    device_id: str
    name: str
    category: str
    product_id: Optional[str] = None
    icon: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'device_id': self.device_id,
            'name': self.name,
            'category': self.category,
            'product_id': self.product_id,
            'icon': self.icon,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeviceIdentity":
        _require_mapping(data, "DeviceIdentity")
        return cls(
            device_id=str(data['device_id']),
            name=str(data.get('name', '')),
            category=str(data.get('category', '')),
            product_id=data.get('product_id'),
            icon=data.get('icon'),
        )


@dataclass
class ProbeState:
    """Probe bookkeeping, timestamps in epoch milliseconds"""
    last_probe_at: Optional[int] = None
    last_success_at: Optional[int] = None
    failure_count: int = 0
    backoff_until: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'last_probe_at': self.last_probe_at,
            'last_success_at': self.last_success_at,
            'failure_count': self.failure_count,
            'backoff_until': self.backoff_until,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProbeState":
        _require_mapping(data, "ProbeState")
        return cls(
            last_probe_at=data.get('last_probe_at'),
            last_success_at=data.get('last_success_at'),
            failure_count=int(data.get('failure_count', 0)),
            backoff_until=data.get('backoff_until'),
        )


@dataclass
class FailureInfo:
    """Details of the most recent probe failure"""
    time: int
    status_code: Optional[int] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'time': self.time,
            'status_code': self.status_code,
            'message': self.message,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FailureInfo":
        _require_mapping(data, "FailureInfo")
        return cls(
            time=int(data['time']),
            status_code=data.get('status_code'),
            message=data.get('message'),
        )


@dataclass
class DiscoveryRecord:
    """Persisted discovery state for a single device"""
    device_id: str
    identity: DeviceIdentity
    state: DiscoveryState = DiscoveryState.CANDIDATE
    online: Optional[bool] = None
    probe: ProbeState = field(default_factory=ProbeState)
    last_failure: Optional[FailureInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'device_id': self.device_id,
            'identity': self.identity.to_dict(),
            'state': self.state.value,
            'online': self.online,
            'probe': self.probe.to_dict(),
            'last_failure': self.last_failure.to_dict() if self.last_failure else None,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiscoveryRecord":
        _require_mapping(data, "DiscoveryRecord")
        failure = data.get('last_failure')
        return cls(
            device_id=str(data['device_id']),
            identity=DeviceIdentity.from_dict(data['identity']),
            state=DiscoveryState(data.get('state', DiscoveryState.CANDIDATE.value)),
            online=data.get('online'),
            probe=ProbeState.from_dict(data.get('probe') or {}),
            last_failure=FailureInfo.from_dict(failure) if failure else None,
        )


@dataclass
class ProbeResult:
    """Outcome of a single reachability probe"""
    ok: bool
    status_code: Optional[int] = None
    status_line: Optional[str] = None
    error: Optional[str] = None
