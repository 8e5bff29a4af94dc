"""
Camera category policy used to decide which cloud devices are worth probing
"""

from typing import Iterable

from .models import DiscoveryRecord, DiscoveryState

DEFAULT_CAMERA_CATEGORIES = frozenset({
    "sp",
    "wf_sp",
    "wf_sub_sp",
    "cdsxj",
    "sxj4g",
    "dghsxj",
    "bjsxj",
    "ksdjsxj",
    "znwnsxj",
    "sp_wnq",
    "ksdjml",
    "dmsxj",
    "sp_Gsmart",
    "xcjly",
    "ipcsxj1",
    "cwsxj",
    "dpsxj",
    "ipcsxj2",
    "ydsxj",
    "mobilecam",
    "acc_ctrl_cam",
    "trailcam",
    "one_stop_solution_cam",
    "pettv",
})

_CAMERA_HINTS = ("sxj", "sp", "cam")


def is_camera_category(category: str, extras: Iterable[str] = ()) -> bool:
    if not isinstance(category, str) or not category:
        return False
    if category in DEFAULT_CAMERA_CATEGORIES or category in set(extras):
        return True
    lowered = category.lower()
    return any(hint in lowered for hint in _CAMERA_HINTS)


class CameraCategoryPolicy:
    """
    Default probe eligibility predicate.

    Force-confirmed devices are always eligible so they can still be verified.
    Everything else must look like a camera unless probe_all is set, which
    is not recommended for large accounts.
    """

    def __init__(self, extra_categories: Iterable[str] = (), probe_all: bool = False):
        self.extra_categories = frozenset(extra_categories)
        self.probe_all = probe_all

    def __call__(self, record: DiscoveryRecord) -> bool:
        if record.state == DiscoveryState.UNVERIFIED:
            return True
        if self.probe_all:
            return True
        return is_camera_category(record.identity.category, self.extra_categories)
