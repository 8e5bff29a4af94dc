"""
Tests for summaries, labels and redacted diagnostics
"""

from datetime import datetime, timezone

from conftest import make_identity
from discovery.diagnostics import (
    STATE_DESCRIPTIONS,
    STATE_LABELS,
    build_diagnostics,
    choice_labels,
    format_summary,
    redact_device_id,
    redacted_record,
    summarize,
)
from discovery.models import DiscoveryState, FailureInfo


def populate(registry):
    registry.upsert_candidate(make_identity("ebf1234567890abc", name="Porch"), online=True)
    registry.upsert_candidate(make_identity("ebf0000000000def", name="Garage"), online=False)
    registry.upsert_candidate(make_identity("ebf1111111111aaa", name="Yard"), online=True)
    registry.upsert_candidate(make_identity("ebf2222222222bbb", name="Hall"))
    registry.mark_verified("ebf1234567890abc", 1000)
    registry.mark_unverified("ebf1111111111aaa")
    registry.record_failure("ebf0000000000def", FailureInfo(time=50, status_code=404, message="invalid-status"), 900)


class TestRedaction:

    def test_short_ids_unchanged(self):
        assert redact_device_id("abcd") == "abcd"
        assert redact_device_id("") == ""

    def test_long_ids_keep_tail(self):
        assert redact_device_id("ebf1234567890abc") == "…890abc"
        assert redact_device_id("abcde") == "…abcde"


class TestSummary:

    def test_counts(self, registry):
        populate(registry)
        counts = summarize(registry.get_records())
        assert counts == {'verified': 1, 'unverified': 1, 'candidates': 2, 'offline': 1}

    def test_format(self):
        text = format_summary({'verified': 1, 'unverified': 2, 'candidates': 3, 'offline': 4})
        assert text == "Verified: 1 • Unverified: 2 • Candidates: 3 • Offline: 4"

    def test_every_state_has_strings(self):
        for state in DiscoveryState:
            assert STATE_LABELS[state]
            assert STATE_DESCRIPTIONS[state]


class TestDiagnostics:

    def test_snapshot(self, registry):
        populate(registry)
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        snapshot = build_diagnostics(registry.get_records(), now=now)

        assert snapshot['generated_at'] == now.isoformat()
        assert snapshot['summary'] == {'verified': 1, 'force_confirmed': 1, 'candidates': 2, 'offline': 1}
        assert len(snapshot['records']) == 4
        assert all(not r['device_id'].startswith("ebf") for r in snapshot['records'])

    def test_redacted_record_failure(self, registry):
        populate(registry)
        entry = redacted_record(registry.get_record("ebf0000000000def"))

        assert entry['device_id'] == "…000def"
        assert entry['last_failure'] == {'time': 50, 'status_code': 404, 'message': "invalid-status"}
        assert entry['probe']['failure_count'] == 1
        assert entry['online'] is False


class TestChoiceLabels:

    def test_only_actionable_records(self, registry):
        populate(registry)
        choices = dict((device_id, label) for label, device_id in choice_labels(registry.get_records()))

        assert set(choices) == {"ebf0000000000def", "ebf1111111111aaa", "ebf2222222222bbb"}
        assert choices["ebf0000000000def"] == "Garage (Candidate, Offline, …000def)"
        assert choices["ebf1111111111aaa"] == "Yard (Force confirmed, Online, …111aaa)"
        assert choices["ebf2222222222bbb"] == "Hall (Candidate, Online, …222bbb)"

    def test_duplicate_labels_are_numbered(self, registry):
        registry.upsert_candidate(make_identity("x11abcdef", name="Cam"))
        registry.upsert_candidate(make_identity("y22abcdef", name="Cam"))

        labels = [label for label, _ in choice_labels(registry.get_records())]

        assert labels == ["Cam (Candidate, Online, …abcdef)", "Cam (Candidate, Online, …abcdef) #2"]
