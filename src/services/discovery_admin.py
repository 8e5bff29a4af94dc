"""
Administrative discovery actions
Maps the settings/admin surface one-to-one onto controller and registry operations
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from discovery.controller import DiscoveryController
from discovery.diagnostics import build_diagnostics, choice_labels, redact_device_id, summarize
from discovery.models import DiscoveryState
from discovery.registry import DiscoveryRegistry

logger = logging.getLogger(__name__)


class DiscoveryAdmin:
    """Administrator actions and read-only views over the discovery registry"""

    def __init__(
        self,
        registry: DiscoveryRegistry,
        controller: DiscoveryController,
        on_exposed: Optional[Callable[[str], None]] = None,
        on_unexposed: Optional[Callable[[str], None]] = None
    ):
        self.registry = registry
        self.controller = controller
        self.on_exposed = on_exposed
        self.on_unexposed = on_unexposed

    def retry(self, device_id: str) -> bool:
        """Retry validation for one device now, bypassing filters and backoff"""
        if device_id not in self.registry:
            return False
        scheduled = self.controller.schedule_probe(device_id, immediate=True, force=True)
        logger.info(f"[ADMIN] Retry requested for {redact_device_id(device_id)} (scheduled={scheduled})")
        return True

    def force_confirm(self, device_id: str) -> bool:
        """Expose a device without validation, then try to validate it anyway"""
        if device_id not in self.registry:
            return False
        self.controller.force_confirm(device_id)
        if self.on_exposed:
            self.on_exposed(device_id)
        self.controller.schedule_probe(device_id, immediate=True, force=True)
        logger.info(f"[ADMIN] Force confirmed {redact_device_id(device_id)}")
        return True

    def remove(self, device_id: str) -> Optional[str]:
        """
        Remove a never-verified candidate, or unconfirm an exposed device.
        Returns the action taken ("removed" / "unconfirmed"), None if unknown.
        """
        state = self.registry.get_state(device_id)
        if state is None:
            return None

        if state == DiscoveryState.CANDIDATE:
            self.registry.remove_record(device_id)
            action = "removed"
        else:
            self.registry.reset_to_candidate(device_id)
            if self.on_unexposed:
                self.on_unexposed(device_id)
            action = "unconfirmed"

        logger.info(f"[ADMIN] {action.capitalize()} {redact_device_id(device_id)}")
        return action

    def retry_all(self) -> int:
        """Schedule an immediate probe for every record that is not verified"""
        scheduled = 0
        for record in self.registry.get_records():
            if record.state == DiscoveryState.VERIFIED:
                continue
            if self.controller.schedule_probe(record.device_id, immediate=True):
                scheduled += 1
        logger.info(f"[ADMIN] Retry all: {scheduled} probes scheduled")
        return scheduled

    def summary(self) -> Dict[str, int]:
        return summarize(self.registry.get_records())

    def diagnostics(self) -> Dict[str, Any]:
        return build_diagnostics(self.registry.get_records())

    def choices(self) -> List[Tuple[str, str]]:
        return choice_labels(self.registry.get_records())
