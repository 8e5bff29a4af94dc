"""
Tests for the camera category policy
"""

import pytest

from conftest import make_identity
from discovery.categories import DEFAULT_CAMERA_CATEGORIES, CameraCategoryPolicy, is_camera_category
from discovery.models import DiscoveryRecord, DiscoveryState


def record_for(category: str, state: DiscoveryState = DiscoveryState.CANDIDATE) -> DiscoveryRecord:
    identity = make_identity("dev1", category=category)
    return DiscoveryRecord(device_id="dev1", identity=identity, state=state)


@pytest.mark.parametrize("category", sorted(DEFAULT_CAMERA_CATEGORIES))
def test_known_categories_are_cameras(category):
    assert is_camera_category(category)


@pytest.mark.parametrize("category", ["newsxj", "DoorCam", "SP_outdoor"])
def test_camera_like_categories(category):
    assert is_camera_category(category)


@pytest.mark.parametrize("category", ["cz", "dj", "kg", "wsdcg", "", None])
def test_non_camera_categories(category):
    assert not is_camera_category(category)


def test_extra_categories():
    assert not is_camera_category("doorbell")
    assert is_camera_category("doorbell", extras=["doorbell"])


class TestCameraCategoryPolicy:

    def test_filters_by_category(self):
        policy = CameraCategoryPolicy()
        assert policy(record_for("sxj4g"))
        assert not policy(record_for("cz"))

    def test_force_confirmed_always_eligible(self):
        policy = CameraCategoryPolicy()
        assert policy(record_for("cz", DiscoveryState.UNVERIFIED))

    def test_probe_all(self):
        policy = CameraCategoryPolicy(probe_all=True)
        assert policy(record_for("cz"))

    def test_extra_categories(self):
        policy = CameraCategoryPolicy(extra_categories=["dj"])
        assert policy(record_for("dj"))
