"""
Discovery summaries, labels and redacted diagnostics snapshots
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import DiscoveryRecord, DiscoveryState

STATE_LABELS = {
    DiscoveryState.CANDIDATE: "Awaiting validation",
    DiscoveryState.VERIFIED: "Validated",
    DiscoveryState.UNVERIFIED: "Added without validation",
}

STATE_DESCRIPTIONS = {
    DiscoveryState.CANDIDATE: "We have detected this camera and will validate a video stream URL.",
    DiscoveryState.VERIFIED: "This camera has a validated video stream URL.",
    DiscoveryState.UNVERIFIED: "This camera was added without validation and may require troubleshooting.",
}


def redact_device_id(device_id: str) -> str:
    """Keep only the tail of a device id for logs and exported diagnostics"""
    if not device_id:
        return ""
    if len(device_id) <= 4:
        return device_id
    return f"…{device_id[-min(6, len(device_id)):]}"


def summarize(records: Iterable[DiscoveryRecord]) -> Dict[str, int]:
    counts = {'verified': 0, 'unverified': 0, 'candidates': 0, 'offline': 0}
    for record in records:
        if record.state == DiscoveryState.VERIFIED:
            counts['verified'] += 1
        elif record.state == DiscoveryState.UNVERIFIED:
            counts['unverified'] += 1
        elif record.state == DiscoveryState.CANDIDATE:
            counts['candidates'] += 1
        if record.online is False:
            counts['offline'] += 1
    return counts


def format_summary(counts: Dict[str, int]) -> str:
    return (
        f"Verified: {counts['verified']} • Unverified: {counts['unverified']} • "
        f"Candidates: {counts['candidates']} • Offline: {counts['offline']}"
    )


def redacted_record(record: DiscoveryRecord) -> Dict[str, Any]:
    failure = record.last_failure
    return {
        'device_id': redact_device_id(record.device_id),
        'name': record.identity.name,
        'category': record.identity.category,
        'product_id': record.identity.product_id,
        'state': record.state.value,
        'online': record.online,
        'probe': {
            'last_probe_at': record.probe.last_probe_at,
            'last_success_at': record.probe.last_success_at,
            'failure_count': record.probe.failure_count,
            'backoff_until': record.probe.backoff_until,
        },
        'last_failure': {
            'time': failure.time,
            'status_code': failure.status_code,
            'message': failure.message,
        } if failure else None,
    }


def build_diagnostics(records: Iterable[DiscoveryRecord], now: Optional[datetime] = None) -> Dict[str, Any]:
    records = list(records)
    counts = summarize(records)
    return {
        'generated_at': (now or datetime.now(timezone.utc)).isoformat(),
        'summary': {
            'verified': counts['verified'],
            'force_confirmed': counts['unverified'],
            'candidates': counts['candidates'],
            'offline': counts['offline'],
        },
        'records': [redacted_record(record) for record in records],
    }


def choice_labels(records: Iterable[DiscoveryRecord]) -> List[Tuple[str, str]]:
    """
    Build unique (label, device_id) pairs for candidates and force-confirmed
    devices, the ones an administrator can act on.
    """
    choices = []
    seen: Dict[str, int] = {}

    for record in records:
        if record.state not in (DiscoveryState.CANDIDATE, DiscoveryState.UNVERIFIED):
            continue

        state_label = "Force confirmed" if record.state == DiscoveryState.UNVERIFIED else "Candidate"
        status_label = "Offline" if record.online is False else "Online"
        name = record.identity.name or "Unknown device"
        base_label = f"{name} ({state_label}, {status_label}, {redact_device_id(record.device_id)})"

        count = seen.get(base_label, 0)
        seen[base_label] = count + 1
        label = f"{base_label} #{count + 1}" if count else base_label
        choices.append((label, record.device_id))

    return choices
