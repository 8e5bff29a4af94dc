"""
Discovery registry - durable owner of per-device discovery records
"""

import copy
import json
import logging
from typing import Dict, Iterable, List, Optional

from storage import KeyValueStore
from .models import DeviceIdentity, DiscoveryRecord, DiscoveryState, FailureInfo, ProbeState

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "discovery.registry"


class DiscoveryRegistry:
    """
    Single source of truth for discovery records.

    Every mutation is written through to the backing store before returning.
    Mutators called with an unknown device id do nothing: the controller can
    race with a deletion and must not fail because of it.
    """

    def __init__(self, store: KeyValueStore, storage_key: str = DEFAULT_STORAGE_KEY):
        self.store = store
        self.storage_key = storage_key
        self._records: Dict[str, DiscoveryRecord] = {}
        self._load()

    # ================== PERSISTENCE ==================

    def _load(self) -> None:
        raw = self.store.get_item(self.storage_key)
        if not raw:
            return

        try:
            parsed = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Discovery registry data is corrupt, starting empty: {e}")
            return

        if not isinstance(parsed, dict):
            logger.warning("Discovery registry data has unexpected layout, starting empty")
            return

        for device_id, data in parsed.items():
            try:
                record = DiscoveryRecord.from_dict(data)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed discovery record {device_id}: {e}")
                continue
            self._records[record.device_id] = record

        logger.info(f"Loaded {len(self._records)} discovery records")

    def _persist(self) -> None:
        payload = {device_id: record.to_dict() for device_id, record in self._records.items()}
        self.store.set_item(self.storage_key, json.dumps(payload))

    # ================== READ ACCESS ==================

    def get_record(self, device_id: str) -> Optional[DiscoveryRecord]:
        record = self._records.get(device_id)
        return copy.deepcopy(record) if record else None

    def get_records(self) -> List[DiscoveryRecord]:
        return [copy.deepcopy(record) for record in self._records.values()]

    def get_state(self, device_id: str) -> Optional[DiscoveryState]:
        record = self._records.get(device_id)
        return record.state if record else None

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    # ================== MUTATIONS ==================

    def upsert_candidate(self, identity: DeviceIdentity, online: Optional[bool] = None) -> DiscoveryRecord:
        """Create a candidate record, or refresh identity/online on an existing one"""
        existing = self._records.get(identity.device_id)
        if existing:
            existing.identity = identity
            if online is not None:
                existing.online = online
            record = existing
        else:
            record = DiscoveryRecord(
                device_id=identity.device_id,
                identity=identity,
                state=DiscoveryState.CANDIDATE,
                online=online,
                probe=ProbeState(),
            )
            self._records[identity.device_id] = record
            logger.debug(f"New discovery candidate: {identity.name} ({identity.category})")

        self._persist()
        return copy.deepcopy(record)

    def upsert_candidates(self, identities: Iterable[DeviceIdentity]) -> None:
        for identity in identities:
            self.upsert_candidate(identity)

    def update_online(self, device_id: str, online: bool) -> None:
        record = self._records.get(device_id)
        if not record:
            return
        record.online = online
        self._persist()

    def mark_verified(self, device_id: str, success_time: int) -> None:
        record = self._records.get(device_id)
        if not record:
            return
        record.state = DiscoveryState.VERIFIED
        record.probe.last_success_at = success_time
        record.probe.failure_count = 0
        record.probe.backoff_until = None
        record.last_failure = None
        self._persist()

    def mark_unverified(self, device_id: str) -> None:
        """Force-confirm: expose without proof, probe history untouched"""
        record = self._records.get(device_id)
        if not record:
            return
        record.state = DiscoveryState.UNVERIFIED
        self._persist()

    def record_probe_attempt(self, device_id: str, time: int) -> None:
        record = self._records.get(device_id)
        if not record:
            return
        record.probe.last_probe_at = time
        self._persist()

    def record_failure(self, device_id: str, failure: FailureInfo, backoff_until: Optional[int] = None) -> None:
        record = self._records.get(device_id)
        if not record:
            return
        record.last_failure = failure
        record.probe.failure_count += 1
        record.probe.backoff_until = backoff_until
        self._persist()

    def reset_to_candidate(self, device_id: str) -> None:
        """Demote to candidate, keeping probe history so backoff carries over"""
        record = self._records.get(device_id)
        if not record:
            return
        record.state = DiscoveryState.CANDIDATE
        self._persist()

    def remove_record(self, device_id: str) -> None:
        if self._records.pop(device_id, None) is None:
            return
        self._persist()
