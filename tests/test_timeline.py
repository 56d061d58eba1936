"""
Timeline reconstruction tests:
  - duration formatting
  - contiguity / anchoring of the pure builder
  - end-to-end rebuild from a POD's ledger
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from podtracker.core.exceptions import NotFoundError
from podtracker.models import db
from podtracker.models.pod import PodStatusHistory
from podtracker.services import pod_service
from podtracker.services.timeline import (
    SOURCE_LEDGER,
    SOURCE_SYNTHESIZED,
    build_timeline,
    format_duration,
    get_pod_timeline,
)

T0 = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


def _entry(at, *, status=None, previous_status=None, sub_status=None,
           previous_sub_status=None, changed_by_id=None):
    return SimpleNamespace(
        created_at=at,
        status=status,
        previous_status=previous_status,
        sub_status=sub_status,
        previous_sub_status=previous_sub_status,
        changed_by_id=changed_by_id,
    )


# ═══════════════════════════════════════════════════════════════════════════
# format_duration
# ═══════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize("span, expected", [
    (timedelta(minutes=90), "1h 30m"),
    (timedelta(0), "0m"),
    (timedelta(seconds=45), "45s"),
    (timedelta(hours=25), "1d 1h"),
    (timedelta(days=2, minutes=5), "2d 5m"),
    (timedelta(minutes=1, seconds=59), "1m"),
    (timedelta(seconds=-5), "0m"),
])
def test_format_duration(span, expected):
    assert format_duration(span) == expected


# ═══════════════════════════════════════════════════════════════════════════
# build_timeline (pure)
# ═══════════════════════════════════════════════════════════════════════════


class TestBuildTimeline:

    def test_no_entries_gives_one_open_interval_per_track(self):
        as_of = T0 + timedelta(days=1)
        tl = build_timeline(T0, "Engineering", "Assessment", [], as_of)

        assert len(tl.status_track) == 1
        only = tl.status_track[0]
        assert only.value == "Engineering"
        assert only.start == T0
        assert only.end == as_of
        assert only.is_open is True
        assert only.source == SOURCE_SYNTHESIZED
        assert only.duration == "1d"
        assert tl.substatus_track[0].value == "Assessment"

    def test_first_interval_takes_previous_value_of_first_entry(self):
        entries = [_entry(T0 + timedelta(hours=2), status="Engineering", previous_status="Initial")]
        tl = build_timeline(T0, "Engineering", "Assignment", entries, T0 + timedelta(hours=5))

        values = [i.value for i in tl.status_track]
        assert values == ["Initial", "Engineering"]
        assert tl.status_track[0].source == SOURCE_SYNTHESIZED
        assert tl.status_track[1].source == SOURCE_LEDGER
        assert tl.status_track[0].duration == "2h"
        assert tl.status_track[1].previous_value == "Initial"

    def test_intervals_are_contiguous_and_only_last_is_open(self):
        entries = [
            _entry(T0 + timedelta(hours=1), status="Engineering", previous_status="Initial"),
            _entry(T0 + timedelta(hours=1), sub_status="Assessment", previous_sub_status="Assignment"),
            _entry(T0 + timedelta(hours=3), status="Blocked", previous_status="Engineering"),
            _entry(T0 + timedelta(hours=6), status="Engineering", previous_status="Blocked"),
        ]
        tl = build_timeline(T0, "Engineering", "Assessment", entries, T0 + timedelta(days=1))

        for track in (tl.status_track, tl.substatus_track):
            for left, right in zip(track, track[1:]):
                assert left.end == right.start
                assert left.is_open is False
            assert track[-1].is_open is True
            assert track[0].start == T0

        assert [i.value for i in tl.status_track] == ["Initial", "Engineering", "Blocked", "Engineering"]
        assert [i.value for i in tl.substatus_track] == ["Assignment", "Assessment"]

    def test_as_of_before_last_change_gives_empty_open_interval(self):
        entries = [_entry(T0 + timedelta(hours=4), status="Engineering", previous_status="Initial")]
        tl = build_timeline(T0, "Engineering", "Assignment", entries, T0 + timedelta(hours=1))
        last = tl.status_track[-1]
        assert last.end == last.start
        assert last.duration == "0m"
        assert last.is_open is True

    def test_naive_timestamps_are_treated_as_utc(self):
        naive = T0.replace(tzinfo=None)
        entries = [_entry(naive + timedelta(hours=1), status="Engineering", previous_status="Initial")]
        tl = build_timeline(naive, "Engineering", "Assignment", entries, T0 + timedelta(hours=2))
        assert tl.status_track[0].duration == "1h"

    def test_merged_intervals_are_chronological(self):
        entries = [
            _entry(T0 + timedelta(hours=2), sub_status="Ready", previous_sub_status="Assignment"),
            _entry(T0 + timedelta(hours=1), status="Engineering", previous_status="Initial"),
        ]
        entries.sort(key=lambda e: e.created_at)
        tl = build_timeline(T0, "Engineering", "Ready", entries, T0 + timedelta(hours=3))
        starts = [i.start for i in tl.intervals()]
        assert starts == sorted(starts)


# ═══════════════════════════════════════════════════════════════════════════
# get_pod_timeline (storage-facing)
# ═══════════════════════════════════════════════════════════════════════════


class TestPodTimeline:

    def test_unknown_pod(self):
        with pytest.raises(NotFoundError):
            get_pod_timeline("missing")

    def test_end_to_end_status_walk(self, make_user):
        x = make_user(email="x@example.com", name="Xavier")
        y = make_user(email="y@example.com", name="Yasmin")

        pod = pod_service.create_pod({
            "pod": "E2E-1",
            "pod_type_original": "Greenfield",
            "pod_workable_date": "2024-03-04",
        }, x.id)
        assert pod.sla_calculated_nbd.isoformat() == "2024-03-18"
        pod.created_at = T0
        db.session.flush()

        pod_service.update_pod(pod.id, {"status": "Engineering"}, x.id)
        pod_service.update_pod(pod.id, {"status": "Complete"}, y.id)

        entries = (
            PodStatusHistory.query.filter_by(pod_id=pod.id)
            .order_by(PodStatusHistory.id.asc()).all()
        )
        assert len(entries) == 2
        entries[0].created_at = T0 + timedelta(days=3)
        entries[1].created_at = T0 + timedelta(days=10)
        db.session.flush()

        data = get_pod_timeline(pod.id, as_of=T0 + timedelta(days=12))
        track = data["statusTrack"]

        assert [i["value"] for i in track] == ["Initial", "Engineering", "Complete"]
        assert [i["isOpen"] for i in track] == [False, False, True]
        assert track[0]["source"] == SOURCE_SYNTHESIZED
        assert track[0]["duration"] == "3d"
        assert track[1]["duration"] == "7d"
        assert track[2]["duration"] == "2d"
        assert track[1]["changedBy"] == {"email": "x@example.com", "name": "Xavier"}
        assert track[2]["changedBy"] == {"email": "y@example.com", "name": "Yasmin"}
        assert len(data["substatusTrack"]) == 1
        assert len(data["statusHistory"]) == 2
        assert data["pod"]["pod"] == "E2E-1"

    def test_timeline_endpoint(self, client, make_pod):
        pod = make_pod("API-1", status="Engineering")
        db.session.commit()

        res = client.get(f"/api/v1/pod-timeline?podId={pod.id}")
        assert res.status_code == 200
        body = res.get_json()
        assert body["statusTrack"][0]["value"] == "Engineering"
        assert body["statusTrack"][0]["isOpen"] is True

    def test_timeline_endpoint_requires_pod_id(self, client):
        assert client.get("/api/v1/pod-timeline").status_code == 400
        assert client.get("/api/v1/pod-timeline?podId=nope").status_code == 404
