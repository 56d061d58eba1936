"""Status ledger writer: one entry per changed track, failures swallowed."""

from unittest.mock import patch

from podtracker.models.pod import PodStatusHistory
from podtracker.services.status_ledger import record_transition


def _before(status="Initial", sub_status="Assignment"):
    return {"status": status, "sub_status": sub_status}


class TestRecordTransition:

    def test_status_change_writes_one_entry(self, make_pod, make_user):
        pod = make_pod()
        actor = make_user(email="a@example.com")

        entries = record_transition(pod.id, actor.id, _before(), _before(status="Engineering"))

        assert len(entries) == 1
        row = PodStatusHistory.query.filter_by(pod_id=pod.id).one()
        assert row.status == "Engineering"
        assert row.previous_status == "Initial"
        assert row.sub_status is None
        assert row.changed_by_id == actor.id

    def test_both_tracks_write_two_entries(self, make_pod):
        pod = make_pod()
        entries = record_transition(
            pod.id, None, _before(), _before(status="Engineering", sub_status="Assessment"),
        )
        assert {e.track for e in entries} == {"status", "substatus"}
        assert PodStatusHistory.query.filter_by(pod_id=pod.id).count() == 2

    def test_noop_diff_writes_nothing(self, make_pod):
        pod = make_pod()
        assert record_transition(pod.id, None, _before(), _before()) == []
        assert PodStatusHistory.query.count() == 0

    def test_creation_writes_nothing(self, make_pod):
        pod = make_pod()
        assert record_transition(pod.id, None, None, _before()) == []
        assert record_transition(pod.id, None, {}, _before()) == []

    def test_tombstoned_actor_is_recorded_as_survivor(self, make_pod, make_user):
        pod = make_pod()
        survivor = make_user(email="s@example.com")
        tomb = make_user(name="Old Profile", imported=True, merged_into=survivor)

        entries = record_transition(pod.id, tomb.id, _before(), _before(status="Blocked"))
        assert entries[0].changed_by_id == survivor.id

    def test_unknown_actor_is_recorded_as_system(self, make_pod):
        pod = make_pod()
        entries = record_transition(pod.id, "ghost", _before(), _before(status="Blocked"))
        assert entries[0].changed_by_id is None

    def test_write_failure_is_swallowed(self, make_pod):
        pod = make_pod()
        with patch("podtracker.services.status_ledger.resolve_live_id",
                   side_effect=RuntimeError("storage offline")):
            entries = record_transition(pod.id, "x", _before(), _before(status="Blocked"))

        assert entries == []
        assert PodStatusHistory.query.count() == 0
