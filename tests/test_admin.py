"""
Tests for administrator discovery actions
"""

import pytest

from conftest import FakeProbe, fake_endpoint, make_identity
from discovery.categories import CameraCategoryPolicy
from discovery.controller import ControllerOptions, DiscoveryController
from discovery.models import DiscoveryState, ProbeResult
from services.discovery_admin import DiscoveryAdmin


class AdminHarness:

    def __init__(self, registry, probe):
        self.exposed = []
        self.unexposed = []
        self.controller = DiscoveryController(
            registry, probe, fake_endpoint,
            ControllerOptions(debounce_ms=0, backoff_base_ms=1000, backoff_max_ms=10000),
            eligibility=CameraCategoryPolicy()
        )
        self.admin = DiscoveryAdmin(
            registry, self.controller,
            on_exposed=self.exposed.append,
            on_unexposed=self.unexposed.append
        )


@pytest.fixture
def harness(registry, fake_probe):
    return AdminHarness(registry, fake_probe)


class TestRetry:

    @pytest.mark.asyncio
    async def test_unknown_device(self, harness):
        assert harness.admin.retry("ghost") is False

    @pytest.mark.asyncio
    async def test_retry_bypasses_category_filter(self, registry, fake_probe, harness):
        registry.upsert_candidate(make_identity("plug", category="cz"))

        assert harness.admin.retry("plug") is True
        await harness.controller.wait_idle()

        assert fake_probe.probed_devices() == ["plug"]
        assert registry.get_state("plug") == DiscoveryState.VERIFIED


class TestForceConfirm:

    @pytest.mark.asyncio
    async def test_exposes_then_validates(self, registry, fake_probe, harness):
        registry.upsert_candidate(make_identity("cam1"))

        assert harness.admin.force_confirm("cam1") is True
        assert registry.get_state("cam1") == DiscoveryState.UNVERIFIED
        assert harness.exposed == ["cam1"]

        await harness.controller.wait_idle()
        assert registry.get_state("cam1") == DiscoveryState.VERIFIED

    @pytest.mark.asyncio
    async def test_stays_exposed_when_validation_fails(self, registry):
        harness = AdminHarness(registry, FakeProbe(default=ProbeResult(ok=False, error="timeout")))
        registry.upsert_candidate(make_identity("cam1"))

        harness.admin.force_confirm("cam1")
        await harness.controller.wait_idle()

        record = registry.get_record("cam1")
        assert record.state == DiscoveryState.UNVERIFIED
        assert record.probe.failure_count == 1

    @pytest.mark.asyncio
    async def test_unknown_device(self, harness):
        assert harness.admin.force_confirm("ghost") is False
        assert harness.exposed == []


class TestRemove:

    @pytest.mark.asyncio
    async def test_candidate_is_removed(self, registry, harness):
        registry.upsert_candidate(make_identity("cam1"))

        assert harness.admin.remove("cam1") == "removed"
        assert "cam1" not in registry
        assert harness.unexposed == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("state", [DiscoveryState.VERIFIED, DiscoveryState.UNVERIFIED])
    async def test_exposed_device_is_unconfirmed(self, registry, harness, state):
        registry.upsert_candidate(make_identity("cam1"))
        if state == DiscoveryState.VERIFIED:
            registry.mark_verified("cam1", 1)
        else:
            registry.mark_unverified("cam1")

        assert harness.admin.remove("cam1") == "unconfirmed"
        assert registry.get_state("cam1") == DiscoveryState.CANDIDATE
        assert harness.unexposed == ["cam1"]

    @pytest.mark.asyncio
    async def test_unknown_device(self, harness):
        assert harness.admin.remove("ghost") is None


class TestRetryAll:

    @pytest.mark.asyncio
    async def test_schedules_non_verified(self, registry, fake_probe, harness):
        registry.upsert_candidate(make_identity("cand"))
        registry.upsert_candidate(make_identity("forced"))
        registry.mark_unverified("forced")
        registry.upsert_candidate(make_identity("done"))
        registry.mark_verified("done", 1)
        registry.upsert_candidate(make_identity("offline"), online=False)
        registry.upsert_candidate(make_identity("plug", category="cz"))

        assert harness.admin.retry_all() == 2
        await harness.controller.wait_idle()

        assert sorted(fake_probe.probed_devices()) == ["cand", "forced"]


class TestViews:

    @pytest.mark.asyncio
    async def test_summary_and_choices(self, registry, harness):
        registry.upsert_candidate(make_identity("cam1", name="Porch"), online=True)
        registry.upsert_candidate(make_identity("cam2", name="Garage"))
        registry.mark_verified("cam2", 1)

        assert harness.admin.summary() == {'verified': 1, 'unverified': 0, 'candidates': 1, 'offline': 0}
        assert harness.admin.choices() == [("Porch (Candidate, Online, cam1)", "cam1")]
        assert harness.admin.diagnostics()['summary']['verified'] == 1
